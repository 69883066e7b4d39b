"""XML signature verification for signed SAML assertions.

Verification mirrors what the remote token endpoint does: apply the
enveloped-signature transform, canonicalize, compare the reference digest, and
check the RSA-SHA1 SignatureValue over canonical SignedInfo. A second path
verifies through signxml as an independent interoperability check.
"""

import base64
import copy
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from lxml import etree
from signxml import DigestAlgorithm, SignatureMethod, XMLVerifier
from signxml.exceptions import InvalidInput
from signxml.exceptions import InvalidSignature as SignXMLInvalidSignature
from signxml.verifier import SignatureConfiguration

from cad_client.models.saml import SAMLAssertion
from cad_client.saml.signer import (
    DS_NS,
    ENVELOPED_SIGNATURE,
    EXC_C14N,
    RSA_SHA1,
    SHA1,
    canonicalize,
    compute_digest,
)
from cad_client.utils.exceptions import KeyLoadError, SignatureVerificationError

logger = logging.getLogger(__name__)

NS = {"ds": DS_NS}


def _remove_enveloped_signature(signature: etree._Element) -> None:
    # lxml drops the tail together with the element; keep it in the document
    parent = signature.getparent()
    if signature.tail:
        previous = signature.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + signature.tail
        else:
            parent.text = (parent.text or "") + signature.tail
    parent.remove(signature)


def _expect_algorithm(parent: etree._Element, path: str, expected: str) -> None:
    node = parent.find(path, NS)
    if node is None or node.get("Algorithm") != expected:
        actual = None if node is None else node.get("Algorithm")
        raise SignatureVerificationError(
            f"Unsupported or missing {path}: expected {expected}, got {actual}"
        )


class SAMLVerifier:
    """Verify enveloped RSA-SHA1 signatures on SAML assertions.

    Attributes:
        public_key: RSA public key matching the signing key

    Example:
        >>> verifier = SAMLVerifier(load_public_key(Path("keys/provider.crt")))
        >>> verifier.verify_assertion(signed_assertion)
        True
    """

    def __init__(self, public_key: Union[rsa.RSAPublicKey, x509.Certificate]) -> None:
        if isinstance(public_key, x509.Certificate):
            public_key = public_key.public_key()

        if not isinstance(public_key, rsa.RSAPublicKey):
            raise KeyLoadError(
                f"Verification key must be an RSA public key or certificate, "
                f"got {type(public_key).__name__}"
            )

        self.public_key = public_key
        logger.debug("SAMLVerifier initialized")

    def verify_xml(self, xml_content: Union[str, bytes]) -> bool:
        """Verify the signature embedded in a signed assertion XML document.

        Raises:
            SignatureVerificationError: On malformed XML, missing or unexpected
                signature structure, digest mismatch, or invalid SignatureValue
        """
        if isinstance(xml_content, str):
            xml_content = xml_content.encode("utf-8")

        try:
            root = etree.fromstring(xml_content)
        except etree.XMLSyntaxError as e:
            raise SignatureVerificationError(f"Invalid XML in signed assertion: {e}") from e

        assertion_id = root.get("ID")
        signature = root.find("ds:Signature", NS)
        if signature is None:
            raise SignatureVerificationError(
                f"No Signature element found in assertion {assertion_id}"
            )

        signed_info = signature.find("ds:SignedInfo", NS)
        if signed_info is None:
            raise SignatureVerificationError("Signature has no SignedInfo")

        _expect_algorithm(signed_info, "ds:CanonicalizationMethod", EXC_C14N)
        _expect_algorithm(signed_info, "ds:SignatureMethod", RSA_SHA1)

        references = signed_info.findall("ds:Reference", NS)
        if len(references) != 1:
            raise SignatureVerificationError(
                f"Expected exactly one Reference, found {len(references)}"
            )
        reference = references[0]

        if reference.get("URI") != f"#{assertion_id}":
            raise SignatureVerificationError(
                f"Reference URI {reference.get('URI')!r} does not point at assertion {assertion_id}"
            )

        transforms = [t.get("Algorithm") for t in reference.findall("ds:Transforms/ds:Transform", NS)]
        if transforms != [ENVELOPED_SIGNATURE, EXC_C14N]:
            raise SignatureVerificationError(f"Unexpected reference transforms: {transforms}")
        _expect_algorithm(reference, "ds:DigestMethod", SHA1)

        expected_digest = (reference.findtext("ds:DigestValue", namespaces=NS) or "").strip()

        unsigned = copy.deepcopy(root)
        _remove_enveloped_signature(unsigned.find("ds:Signature", NS))
        actual_digest = compute_digest(canonicalize(unsigned))

        if actual_digest != expected_digest:
            logger.warning(
                f"SAML digest verification failed for {assertion_id}: "
                f"assertion content has been modified after signing"
            )
            raise SignatureVerificationError(
                f"Digest mismatch for assertion {assertion_id}: "
                f"content has been modified after signing"
            )

        signature_value = (signature.findtext("ds:SignatureValue", namespaces=NS) or "").strip()
        try:
            raw_signature = base64.b64decode(signature_value, validate=True)
        except ValueError as e:
            raise SignatureVerificationError(f"SignatureValue is not valid base64: {e}") from e

        digest = hashlib.sha1(canonicalize(signed_info)).digest()
        try:
            self.public_key.verify(
                raw_signature, digest, padding.PKCS1v15(), Prehashed(hashes.SHA1())
            )
        except InvalidSignature as e:
            logger.warning(f"SAML signature verification failed for {assertion_id}")
            raise SignatureVerificationError(
                f"SignatureValue does not verify for assertion {assertion_id}. "
                f"Assertion may be tampered or signed with a different key."
            ) from e

        logger.info(f"Signature verification successful: {assertion_id}")
        return True

    def verify_assertion(self, saml_assertion: SAMLAssertion) -> bool:
        """Verify XML signature on a signed SAMLAssertion.

        Returns:
            True if the digest and signature are valid

        Raises:
            SignatureVerificationError: If verification fails for any reason
        """
        logger.info(f"Verifying SAML assertion: {saml_assertion.assertion_id}")
        return self.verify_xml(saml_assertion.xml_content)

    def validate_timestamp_freshness(
        self, saml_assertion: SAMLAssertion, now: Optional[datetime] = None
    ) -> bool:
        """Check NotBefore <= now < NotOnOrAfter.

        Returns:
            True if the assertion is inside its validity window, False otherwise
        """
        if now is None:
            now = datetime.now(timezone.utc)

        if saml_assertion.not_before > now:
            logger.warning(
                f"SAML assertion {saml_assertion.assertion_id} not yet valid. "
                f"NotBefore: {saml_assertion.not_before.isoformat()}, Current: {now.isoformat()}"
            )
            return False

        if saml_assertion.not_on_or_after <= now:
            logger.warning(
                f"SAML assertion {saml_assertion.assertion_id} expired. "
                f"NotOnOrAfter: {saml_assertion.not_on_or_after.isoformat()}, "
                f"Current: {now.isoformat()}"
            )
            return False

        return True


def verify_with_signxml(xml_content: Union[str, bytes], certificate: x509.Certificate) -> bool:
    """Verify a signed assertion with signxml, allowing the SHA-1 algorithms.

    The certificate overrides any KeyInfo in the document. signxml rejects
    SHA-1 by default, so the accepted algorithms are configured explicitly.

    Raises:
        SignatureVerificationError: If signxml rejects the signature
    """
    if isinstance(xml_content, str):
        xml_content = xml_content.encode("utf-8")

    cert_pem = certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
    config = SignatureConfiguration(
        signature_methods=frozenset({SignatureMethod.RSA_SHA1}),
        digest_algorithms=frozenset({DigestAlgorithm.SHA1}),
    )

    try:
        XMLVerifier().verify(
            etree.fromstring(xml_content), x509_cert=cert_pem, expect_config=config
        )
    except (SignXMLInvalidSignature, InvalidInput) as e:
        raise SignatureVerificationError(f"signxml verification failed: {e}") from e

    return True
