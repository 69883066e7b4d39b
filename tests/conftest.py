"""
Shared pytest configuration and fixtures.

This module provides fixtures used across the unit and integration suites:
an RSA signing key, a matching self-signed certificate, PEM files on disk,
and assertion builder/signer instances wired to them.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from cad_client.saml.assertion_builder import SAMLAssertionBuilder
from cad_client.saml.signer import SAMLSigner

TEST_ISSUER = "provider.example.com"
TEST_SUBJECT = "customer-42"


class FakeClock:
    """Controllable UTC clock for expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _self_signed_certificate(private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "TestOrg"),
        x509.NameAttribute(NameOID.COMMON_NAME, TEST_ISSUER),
    ])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(private_key.public_key()),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """2048-bit RSA signing key shared by the whole test session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key() -> rsa.RSAPrivateKey:
    """A second RSA key, for wrong-key verification tests."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def certificate(rsa_private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Self-signed certificate for rsa_private_key."""
    return _self_signed_certificate(rsa_private_key)


@pytest.fixture
def key_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    """Unencrypted PKCS#1 PEM of rsa_private_key."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def key_file(tmp_path: Path, key_pem: bytes) -> Path:
    """PEM private key written to a temporary file."""
    path = tmp_path / "provider.pem"
    path.write_bytes(key_pem)
    return path


@pytest.fixture
def cert_file(tmp_path: Path, certificate: x509.Certificate) -> Path:
    """PEM certificate written to a temporary file."""
    path = tmp_path / "provider.crt"
    path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    return path


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def builder() -> SAMLAssertionBuilder:
    """Assertion builder using the test issuer and the default 10 minute lifetime."""
    return SAMLAssertionBuilder(TEST_ISSUER)


@pytest.fixture
def signer(rsa_private_key: rsa.RSAPrivateKey) -> SAMLSigner:
    return SAMLSigner(rsa_private_key)


@pytest.fixture
def signed_assertion(builder: SAMLAssertionBuilder, signer: SAMLSigner):
    """Freshly built and signed assertion for TEST_SUBJECT."""
    return signer.sign_assertion(builder.build(TEST_SUBJECT))
