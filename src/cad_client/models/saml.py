"""Data models for SAML assertion handling.

This module defines the dataclass carried through the assertion pipeline:
built by the assertion builder, signed by the signer, and submitted by the
credential exchanger.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SAMLAssertion:
    """SAML 2.0 bearer assertion with metadata.

    Instances are immutable. Signing produces a new instance with the
    signature fields populated; the unsigned original is left untouched.

    Attributes:
        assertion_id: Unique assertion identifier (RefID), "_" + 32 hex chars
        issuer: Assertion issuer (SAML provider ID)
        subject: Subject of the assertion (customer identifier)
        audience: Intended audience (defaults to the issuer)
        issue_instant: Timestamp when assertion was issued (UTC)
        not_before: Start of validity period, equal to issue_instant
        not_on_or_after: End of validity period (exclusive)
        session_index: AuthnStatement session index, equal to assertion_id
        authn_context_class: AuthnContextClassRef URI
        xml_content: Exclusive-canonical assertion XML string
        signature: Base64 SignatureValue (empty until signed)
        digest_value: Base64 SHA-1 reference digest (empty until signed)
    """

    assertion_id: str
    issuer: str
    subject: str
    audience: str
    issue_instant: datetime
    not_before: datetime
    not_on_or_after: datetime
    session_index: str
    authn_context_class: str
    xml_content: str
    signature: str = ""
    digest_value: str = ""

    @property
    def is_signed(self) -> bool:
        """True once a SignatureValue has been attached."""
        return bool(self.signature)
