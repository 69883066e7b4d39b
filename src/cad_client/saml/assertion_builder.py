"""SAML 2.0 bearer assertion construction.

This module builds the unsigned assertion the token endpoint expects: issuer,
subject NameID with bearer confirmation, a short validity window, and an
AuthnStatement whose SessionIndex equals the assertion ID. The assertion is
built with lxml and stored in exclusive-canonical form, ready for signing.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from lxml import etree

from cad_client.models.saml import SAMLAssertion
from cad_client.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

# SAML 2.0 namespace
SAML_NS = "urn:oasis:names:tc:SAML:2.0:assertion"

NAMEID_FORMAT_UNSPECIFIED = "urn:oasis:names:tc:SAML:1.1:nameid-format:unspecified"
AUTHN_CONTEXT_UNSPECIFIED = "urn:oasis:names:tc:SAML:2.0:ac:classes:unspecified"
CONFIRMATION_METHOD_BEARER = "urn:oasis:names:tc:SAML:2.0:cm:bearer"

SAML_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

DEFAULT_LIFETIME = timedelta(minutes=10)


def generate_assertion_id() -> str:
    """Return a fresh RefID: "_" followed by 32 lowercase hex digits.

    The leading underscore keeps the value a valid xs:ID. The hex part is a
    random UUID4, so IDs are unguessable as well as unique.

    Example:
        >>> len(generate_assertion_id())
        33
    """
    assertion_id = f"_{uuid.uuid4().hex}"
    logger.debug(f"Generated assertion ID: {assertion_id}")
    return assertion_id


def format_saml_time(instant: datetime) -> str:
    """Format a datetime as a SAML xs:dateTime in UTC with Z suffix."""
    return instant.astimezone(timezone.utc).strftime(SAML_TIME_FORMAT)


def generate_saml_timestamps(
    lifetime: timedelta, now: Optional[datetime] = None
) -> Dict[str, datetime]:
    """Compute the assertion timestamps.

    The current instant is truncated to whole seconds so the serialized XML and
    the dataclass fields carry exactly the same values.

    Args:
        lifetime: Assertion validity period
        now: Reference instant (defaults to the current UTC time)

    Returns:
        Dictionary with keys: issue_instant, not_before, not_on_or_after

    Example:
        >>> timestamps = generate_saml_timestamps(timedelta(minutes=10))
        >>> assert timestamps["not_before"] == timestamps["issue_instant"]
    """
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc).replace(microsecond=0)

    timestamps = {
        "issue_instant": now,
        "not_before": now,
        "not_on_or_after": now + lifetime,
    }

    logger.debug(
        f"Generated SAML timestamps: lifetime={lifetime.total_seconds():.0f}s, "
        f"expires={format_saml_time(timestamps['not_on_or_after'])}"
    )

    return timestamps


def _validate_parameters(issuer: str, subject: str, lifetime: timedelta) -> None:
    """Validate assertion parameters before anything is built.

    Raises:
        ValidationError: If any parameter is invalid or empty
    """
    if not subject or not isinstance(subject, str):
        raise ValidationError(
            f"Customer identifier must be a non-empty string, got: {subject!r}. "
            f"Provide the customer ID the credentials are requested for."
        )

    if not issuer or not isinstance(issuer, str):
        raise ValidationError(
            f"Issuer must be a non-empty string, got: {issuer!r}. "
            f"Provide the SAML provider ID registered with the token endpoint."
        )

    if not isinstance(lifetime, timedelta) or lifetime <= timedelta(0):
        raise ValidationError(
            f"Assertion lifetime must be a positive timedelta, got: {lifetime!r}"
        )


def _build_assertion_element(
    assertion_id: str, issue_instant: str, issuer: str
) -> etree._Element:
    """Build SAML Assertion root element with its Issuer."""
    assertion = etree.Element(
        f"{{{SAML_NS}}}Assertion",
        nsmap={"saml": SAML_NS},
        attrib={
            "ID": assertion_id,
            "IssueInstant": issue_instant,
            "Version": "2.0",
        },
    )

    issuer_elem = etree.SubElement(assertion, f"{{{SAML_NS}}}Issuer")
    issuer_elem.text = issuer

    return assertion


def _add_subject_element(assertion: etree._Element, subject: str) -> None:
    """Add Subject with an unspecified-format NameID and bearer confirmation."""
    subject_elem = etree.SubElement(assertion, f"{{{SAML_NS}}}Subject")

    name_id = etree.SubElement(
        subject_elem,
        f"{{{SAML_NS}}}NameID",
        attrib={"Format": NAMEID_FORMAT_UNSPECIFIED},
    )
    name_id.text = subject

    etree.SubElement(
        subject_elem,
        f"{{{SAML_NS}}}SubjectConfirmation",
        attrib={"Method": CONFIRMATION_METHOD_BEARER},
    )


def _add_conditions_element(
    assertion: etree._Element, not_before: str, not_on_or_after: str, audience: str
) -> None:
    """Add Conditions with the validity window and audience restriction."""
    conditions = etree.SubElement(
        assertion,
        f"{{{SAML_NS}}}Conditions",
        attrib={"NotBefore": not_before, "NotOnOrAfter": not_on_or_after},
    )

    audience_restriction = etree.SubElement(
        conditions, f"{{{SAML_NS}}}AudienceRestriction"
    )
    audience_elem = etree.SubElement(audience_restriction, f"{{{SAML_NS}}}Audience")
    audience_elem.text = audience


def _add_authn_statement(
    assertion: etree._Element, authn_instant: str, session_index: str
) -> None:
    """Add AuthnStatement with an unspecified authentication context."""
    authn_statement = etree.SubElement(
        assertion,
        f"{{{SAML_NS}}}AuthnStatement",
        attrib={"AuthnInstant": authn_instant, "SessionIndex": session_index},
    )

    authn_context = etree.SubElement(authn_statement, f"{{{SAML_NS}}}AuthnContext")
    class_ref = etree.SubElement(authn_context, f"{{{SAML_NS}}}AuthnContextClassRef")
    class_ref.text = AUTHN_CONTEXT_UNSPECIFIED


class SAMLAssertionBuilder:
    """Build unsigned SAML 2.0 bearer assertions.

    Attributes:
        issuer: SAML provider ID used as Issuer
        lifetime: Validity window of each built assertion
        audience: Audience restriction (defaults to the issuer)

    Example:
        >>> builder = SAMLAssertionBuilder("provider.example.com")
        >>> assertion = builder.build("customer-42")
        >>> assert assertion.session_index == assertion.assertion_id
    """

    def __init__(
        self,
        issuer: str,
        lifetime: timedelta = DEFAULT_LIFETIME,
        audience: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.issuer = issuer
        self.lifetime = lifetime
        self.audience = audience or issuer
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        logger.debug(
            f"SAMLAssertionBuilder initialized: issuer={issuer}, "
            f"lifetime={lifetime.total_seconds():.0f}s"
        )

    def build(self, subject: str, lifetime: Optional[timedelta] = None) -> SAMLAssertion:
        """Build an unsigned assertion for one customer.

        Args:
            subject: Customer identifier placed in Subject/NameID
            lifetime: Overrides the builder's lifetime for this assertion

        Returns:
            SAMLAssertion with exclusive-canonical xml_content and empty signature

        Raises:
            ValidationError: If subject is empty or lifetime is not positive
        """
        if lifetime is None:
            lifetime = self.lifetime
        _validate_parameters(self.issuer, subject, lifetime)

        assertion_id = generate_assertion_id()
        timestamps = generate_saml_timestamps(lifetime, now=self._clock())
        issue_instant = format_saml_time(timestamps["issue_instant"])
        not_on_or_after = format_saml_time(timestamps["not_on_or_after"])

        assertion_elem = _build_assertion_element(assertion_id, issue_instant, self.issuer)
        _add_subject_element(assertion_elem, subject)
        _add_conditions_element(
            assertion_elem,
            format_saml_time(timestamps["not_before"]),
            not_on_or_after,
            self.audience,
        )
        _add_authn_statement(assertion_elem, issue_instant, assertion_id)

        xml_content = etree.tostring(
            assertion_elem, method="c14n", exclusive=True, with_comments=False
        ).decode("utf-8")

        logger.info(f"Built SAML assertion {assertion_id} for subject={subject}")

        return SAMLAssertion(
            assertion_id=assertion_id,
            issuer=self.issuer,
            subject=subject,
            audience=self.audience,
            issue_instant=timestamps["issue_instant"],
            not_before=timestamps["not_before"],
            not_on_or_after=timestamps["not_on_or_after"],
            session_index=assertion_id,
            authn_context_class=AUTHN_CONTEXT_UNSPECIFIED,
            xml_content=xml_content,
        )
