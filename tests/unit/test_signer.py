"""Unit tests for SAML signer module.

Tests enveloped RSA-SHA1 signing, covering:
- SAMLSigner initialization and key checks
- Signature structure and placement
- Immutability of the unsigned assertion
- Error handling
"""

from dataclasses import replace
from unittest.mock import Mock

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from lxml import etree

from cad_client.saml.assertion_builder import SAML_NS
from cad_client.saml.signer import (
    DS_NS,
    ENVELOPED_SIGNATURE,
    EXC_C14N,
    RSA_SHA1,
    SHA1,
    SAMLSigner,
    canonicalize,
    compute_digest,
)
from cad_client.utils.exceptions import KeyLoadError, SAMLSigningError

NS = {"saml": SAML_NS, "ds": DS_NS}


class TestSAMLSignerInitialization:
    """Test SAMLSigner initialization."""

    def test_signer_initialization_success(self, rsa_private_key) -> None:
        """Test SAMLSigner accepts a 2048-bit RSA key."""
        signer = SAMLSigner(rsa_private_key)

        assert signer.private_key is rsa_private_key

    def test_signer_rejects_missing_key(self) -> None:
        """Test None key raises KeyLoadError."""
        with pytest.raises(KeyLoadError, match="private key is required"):
            SAMLSigner(None)

    def test_signer_rejects_non_rsa_key(self) -> None:
        """Test EC key raises KeyLoadError."""
        ec_key = ec.generate_private_key(ec.SECP256R1())

        with pytest.raises(KeyLoadError, match="RSA"):
            SAMLSigner(ec_key)

    def test_signer_rejects_small_key(self) -> None:
        """Test keys below the minimum size are refused."""
        small_key = Mock(spec=rsa.RSAPrivateKey)
        small_key.key_size = 512

        with pytest.raises(KeyLoadError, match="too small"):
            SAMLSigner(small_key)


class TestSignAssertion:
    """Test SAMLSigner.sign_assertion()."""

    def test_sign_returns_signed_copy(self, builder, signer) -> None:
        """Test signing produces a new signed assertion and leaves input untouched."""
        # Arrange
        unsigned = builder.build("customer-42")

        # Act
        signed = signer.sign_assertion(unsigned)

        # Assert
        assert signed is not unsigned
        assert signed.is_signed
        assert signed.digest_value
        assert not unsigned.is_signed
        assert "Signature" not in unsigned.xml_content
        assert signed.assertion_id == unsigned.assertion_id

    def test_signature_placed_after_issuer(self, signed_assertion) -> None:
        """Test Signature is the second child of the assertion."""
        root = etree.fromstring(signed_assertion.xml_content.encode("utf-8"))

        children = [etree.QName(child).localname for child in root]

        assert children == ["Issuer", "Signature", "Subject", "Conditions", "AuthnStatement"]

    def test_signature_structure(self, signed_assertion) -> None:
        """Test SignedInfo carries the expected algorithms and reference."""
        root = etree.fromstring(signed_assertion.xml_content.encode("utf-8"))
        signed_info = root.find("ds:Signature/ds:SignedInfo", NS)

        assert signed_info.find("ds:CanonicalizationMethod", NS).get("Algorithm") == EXC_C14N
        assert signed_info.find("ds:SignatureMethod", NS).get("Algorithm") == RSA_SHA1

        reference = signed_info.find("ds:Reference", NS)
        assert reference.get("URI") == f"#{signed_assertion.assertion_id}"
        transforms = [t.get("Algorithm") for t in reference.findall("ds:Transforms/ds:Transform", NS)]
        assert transforms == [ENVELOPED_SIGNATURE, EXC_C14N]
        assert reference.find("ds:DigestMethod", NS).get("Algorithm") == SHA1
        assert reference.findtext("ds:DigestValue", namespaces=NS) == signed_assertion.digest_value

        signature_value = root.findtext("ds:Signature/ds:SignatureValue", namespaces=NS)
        assert signature_value == signed_assertion.signature

    def test_digest_covers_unsigned_canonical_form(self, builder, signer) -> None:
        """Test the reference digest equals SHA-1 of the unsigned canonical XML."""
        unsigned = builder.build("customer-42")

        signed = signer.sign_assertion(unsigned)

        expected = compute_digest(canonicalize(etree.fromstring(unsigned.xml_content.encode("utf-8"))))
        assert signed.digest_value == expected

    def test_no_key_info_emitted(self, signed_assertion) -> None:
        """Test the minimal profile carries no KeyInfo element."""
        root = etree.fromstring(signed_assertion.xml_content.encode("utf-8"))

        assert root.find("ds:Signature/ds:KeyInfo", NS) is None

    def test_sign_already_signed_raises(self, signer, signed_assertion) -> None:
        """Test signing a signed assertion raises SAMLSigningError."""
        with pytest.raises(SAMLSigningError, match="already signed"):
            signer.sign_assertion(signed_assertion)

    def test_sign_invalid_xml_raises(self, builder, signer) -> None:
        """Test malformed XML raises SAMLSigningError."""
        broken = replace(builder.build("customer-42"), xml_content="<saml:Assertion")

        with pytest.raises(SAMLSigningError, match="Invalid XML"):
            signer.sign_assertion(broken)

    def test_sign_id_mismatch_raises(self, builder, signer) -> None:
        """Test XML whose ID differs from assertion_id is refused."""
        mismatched = replace(builder.build("customer-42"), assertion_id="_other")

        with pytest.raises(SAMLSigningError, match="does not match"):
            signer.sign_assertion(mismatched)
