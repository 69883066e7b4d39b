"""Enveloped XML signature for SAML assertions.

This module implements the minimal XML-DSig profile the token endpoint
verifies: exclusive C14N without comments, a single Reference to the
assertion ID with enveloped-signature and exclusive C14N transforms, a SHA-1
digest, and an RSA-SHA1 (PKCS#1 v1.5) SignatureValue. Canonicalization is done
with lxml and signing with cryptography.

Order matters:
    1. canonicalize the unsigned assertion and digest it
    2. build SignedInfo around that digest
    3. place the Signature after Issuer, canonicalize SignedInfo and sign it
"""

import base64
import hashlib
import logging
from dataclasses import replace

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from lxml import etree

from cad_client.models.saml import SAMLAssertion
from cad_client.saml.assertion_builder import SAML_NS
from cad_client.utils.exceptions import KeyLoadError, SAMLSigningError

logger = logging.getLogger(__name__)

# XML Signature namespace and algorithm identifiers
DS_NS = "http://www.w3.org/2000/09/xmldsig#"
EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"
RSA_SHA1 = "http://www.w3.org/2000/09/xmldsig#rsa-sha1"
ENVELOPED_SIGNATURE = "http://www.w3.org/2000/09/xmldsig#enveloped-signature"
SHA1 = "http://www.w3.org/2000/09/xmldsig#sha1"

MIN_KEY_SIZE = 1024


def canonicalize(element: etree._Element) -> bytes:
    """Serialize an element with exclusive XML canonicalization, no comments.

    Works on sub-elements too: only namespaces visibly used inside the
    subtree are rendered.
    """
    return etree.tostring(element, method="c14n", exclusive=True, with_comments=False)


def compute_digest(data: bytes) -> str:
    """Return base64(SHA-1(data))."""
    return base64.b64encode(hashlib.sha1(data).digest()).decode("ascii")


def _ds(tag: str) -> str:
    return f"{{{DS_NS}}}{tag}"


def build_signature_element(assertion_id: str, digest_value: str) -> etree._Element:
    """Build ds:Signature containing SignedInfo (SignatureValue is added later).

    Args:
        assertion_id: Referenced assertion ID (Reference URI is "#" + ID)
        digest_value: Base64 SHA-1 digest of the canonical assertion

    Returns:
        ds:Signature element with a complete ds:SignedInfo child
    """
    signature = etree.Element(_ds("Signature"), nsmap={"ds": DS_NS})
    signed_info = etree.SubElement(signature, _ds("SignedInfo"))

    etree.SubElement(signed_info, _ds("CanonicalizationMethod"), Algorithm=EXC_C14N)
    etree.SubElement(signed_info, _ds("SignatureMethod"), Algorithm=RSA_SHA1)

    reference = etree.SubElement(signed_info, _ds("Reference"), URI=f"#{assertion_id}")
    transforms = etree.SubElement(reference, _ds("Transforms"))
    etree.SubElement(transforms, _ds("Transform"), Algorithm=ENVELOPED_SIGNATURE)
    etree.SubElement(transforms, _ds("Transform"), Algorithm=EXC_C14N)
    etree.SubElement(reference, _ds("DigestMethod"), Algorithm=SHA1)
    digest_elem = etree.SubElement(reference, _ds("DigestValue"))
    digest_elem.text = digest_value

    return signature


def _insert_after_issuer(assertion: etree._Element, signature: etree._Element) -> None:
    # SAML schema order: Issuer, Signature, Subject, ...
    issuer = assertion.find(f"{{{SAML_NS}}}Issuer")
    index = assertion.index(issuer) + 1 if issuer is not None else 0
    assertion.insert(index, signature)


class SAMLSigner:
    """Sign SAML assertions with an enveloped RSA-SHA1 XML signature.

    Attributes:
        private_key: RSA private key used to produce SignatureValue

    Example:
        >>> from cad_client.saml.key_manager import load_private_key
        >>> signer = SAMLSigner(load_private_key(Path("keys/provider.pem")))
        >>> signed = signer.sign_assertion(builder.build("customer-42"))
        >>> assert "<ds:Signature" in signed.xml_content
    """

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        """Initialize signer with an RSA private key.

        Raises:
            KeyLoadError: If the key is missing, not RSA, or too small to sign
                a SHA-1 PKCS#1 v1.5 digest
        """
        if private_key is None:
            raise KeyLoadError(
                "A private key is required for signing. "
                "Load one with cad_client.saml.key_manager.load_private_key()."
            )

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyLoadError(
                f"Signing key must be an RSA private key, got {type(private_key).__name__}. "
                f"The token endpoint only accepts RSA-SHA1 signatures."
            )

        if private_key.key_size < MIN_KEY_SIZE:
            raise KeyLoadError(
                f"RSA key of {private_key.key_size} bits is too small; "
                f"at least {MIN_KEY_SIZE} bits are required."
            )

        self.private_key = private_key
        logger.info(f"SAMLSigner initialized: algorithm=RSA-SHA1, key_size={private_key.key_size}")

    def _signature_value(self, signed_info_c14n: bytes) -> str:
        digest = hashlib.sha1(signed_info_c14n).digest()
        raw = self.private_key.sign(digest, padding.PKCS1v15(), Prehashed(hashes.SHA1()))
        return base64.b64encode(raw).decode("ascii")

    def sign_assertion(self, saml_assertion: SAMLAssertion) -> SAMLAssertion:
        """Sign SAML assertion with an enveloped XML signature.

        The input assertion is not modified; a new SAMLAssertion carrying the
        signed XML is returned. On any failure nothing is returned.

        Args:
            saml_assertion: Unsigned SAML assertion to sign

        Returns:
            New SAMLAssertion with signature, digest_value and signed xml_content

        Raises:
            SAMLSigningError: If the XML is malformed, already signed, does not
                match the assertion ID, or signing fails
        """
        logger.info(f"Signing SAML assertion: {saml_assertion.assertion_id}")

        try:
            assertion_element = etree.fromstring(saml_assertion.xml_content.encode("utf-8"))
        except etree.XMLSyntaxError as e:
            logger.error(f"Invalid XML structure in SAML assertion: {e}")
            raise SAMLSigningError(
                f"Invalid XML structure in SAML assertion: {e}. "
                f"Ensure xml_content was produced by SAMLAssertionBuilder."
            ) from e

        if assertion_element.get("ID") != saml_assertion.assertion_id:
            raise SAMLSigningError(
                f"Assertion XML ID {assertion_element.get('ID')!r} does not match "
                f"assertion_id {saml_assertion.assertion_id!r}"
            )

        if assertion_element.find(_ds("Signature")) is not None:
            raise SAMLSigningError(
                f"SAML assertion {saml_assertion.assertion_id} is already signed"
            )

        try:
            digest_value = compute_digest(canonicalize(assertion_element))

            signature = build_signature_element(saml_assertion.assertion_id, digest_value)
            _insert_after_issuer(assertion_element, signature)

            signed_info = signature.find(_ds("SignedInfo"))
            signature_value = self._signature_value(canonicalize(signed_info))

            value_elem = etree.SubElement(signature, _ds("SignatureValue"))
            value_elem.text = signature_value

            signed_xml = etree.tostring(assertion_element, encoding="unicode")
        except (ValueError, TypeError, etree.LxmlError) as e:
            logger.error(f"SAML signing failed for {saml_assertion.assertion_id}: {e}")
            raise SAMLSigningError(
                f"Failed to sign SAML assertion {saml_assertion.assertion_id}: {e}"
            ) from e

        logger.info(f"SAML assertion signed successfully: {saml_assertion.assertion_id}")
        logger.debug(f"Reference digest for {saml_assertion.assertion_id}: {digest_value}")

        return replace(
            saml_assertion,
            xml_content=signed_xml,
            signature=signature_value,
            digest_value=digest_value,
        )
