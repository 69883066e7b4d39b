"""Signing key and certificate loading.

This module loads the RSA private key used to sign assertions and the
certificate (or public key) used to verify them. PEM keys may be PKCS#1
("BEGIN RSA PRIVATE KEY") or PKCS#8 ("BEGIN PRIVATE KEY"). Failures raise
KeyLoadError with remediation text rather than aborting the process.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from cad_client.utils.exceptions import KeyLoadError

logger = logging.getLogger(__name__)

DEFAULT_KEY_ENV_VAR = "CAD_CLIENT_PRIVATE_KEY"


def _read_bytes(source: Union[Path, str, bytes], kind: str) -> bytes:
    if isinstance(source, bytes):
        return source

    path = Path(source)
    if not path.exists():
        raise KeyLoadError(
            f"{kind} file not found: {path}. "
            f"Ensure the file exists and path is correct."
        )
    try:
        return path.read_bytes()
    except OSError as e:
        raise KeyLoadError(f"Failed to read {kind.lower()} file {path}: {e}") from e


def load_private_key(
    source: Union[Path, str, bytes], password: Optional[bytes] = None
) -> rsa.RSAPrivateKey:
    """Load an RSA private key from a PEM file or PEM bytes.

    Args:
        source: Path to a PEM key file, or the PEM data itself as bytes
        password: Optional password for an encrypted key

    Returns:
        Loaded RSA private key

    Raises:
        KeyLoadError: If the key cannot be read, decoded, or is not RSA

    Example:
        >>> key = load_private_key(Path("keys/provider.pem"))
        >>> print(f"Key size: {key.key_size}")
    """
    key_data = _read_bytes(source, "Private key")
    origin = "PEM data" if isinstance(source, bytes) else Path(source).name

    try:
        private_key = serialization.load_pem_private_key(key_data, password=password)
    except TypeError as e:
        raise KeyLoadError(
            f"Failed to load private key from {origin}: {e}. "
            f"Provide the password only if the key is encrypted."
        ) from e
    except ValueError as e:
        raise KeyLoadError(
            f"Failed to load private key from {origin}: unable to decode PEM data. "
            f"Ensure it is a PEM RSA key (PKCS#1 or PKCS#8) and the password is correct."
        ) from e

    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise KeyLoadError(
            f"Private key from {origin} is {type(private_key).__name__}, not RSA. "
            f"Assertions are signed with RSA-SHA1."
        )

    # Never log key material
    logger.info(f"Loaded RSA private key from {origin} ({private_key.key_size} bits)")
    return private_key


def load_private_key_from_env(
    var_name: str = DEFAULT_KEY_ENV_VAR, password: Optional[bytes] = None
) -> rsa.RSAPrivateKey:
    """Load an RSA private key from PEM text stored in an environment variable.

    Literal "\\n" sequences are turned into newlines, which lets a
    single-line value in a .env file hold a PEM key.

    Raises:
        KeyLoadError: If the variable is unset or does not hold a valid key
    """
    pem_text = os.environ.get(var_name)
    if not pem_text:
        raise KeyLoadError(
            f"Environment variable {var_name} is not set. "
            f"Export the PEM private key or configure private_key_path instead."
        )
    return load_private_key(pem_text.replace("\\n", "\n").encode("utf-8"), password=password)


def check_expiration_warning(cert: x509.Certificate, warning_days: int = 30) -> bool:
    """Log a warning if the certificate expires within warning_days.

    Returns:
        True if certificate expires within warning_days, False otherwise
    """
    now = datetime.now(timezone.utc)
    if cert.not_valid_after_utc < now + timedelta(days=warning_days):
        days_remaining = (cert.not_valid_after_utc - now).days
        logger.warning(
            f"Certificate expiring soon: {days_remaining} days remaining "
            f"(expires: {cert.not_valid_after_utc.strftime('%Y-%m-%d')})"
        )
        return True
    return False


def load_certificate(source: Union[Path, str, bytes]) -> x509.Certificate:
    """Load an X.509 certificate from a PEM file or PEM bytes.

    Raises:
        KeyLoadError: If the certificate cannot be loaded

    Example:
        >>> cert = load_certificate(Path("keys/provider.crt"))
        >>> print(cert.subject.rfc4514_string())
    """
    cert_data = _read_bytes(source, "Certificate")

    try:
        cert = x509.load_pem_x509_certificate(cert_data)
    except ValueError as e:
        raise KeyLoadError(
            f"Failed to load PEM certificate: {e}. Ensure file is valid PEM format."
        ) from e

    logger.info(f"Loaded PEM certificate: {cert.subject.rfc4514_string()}")
    check_expiration_warning(cert)
    return cert


def load_public_key(source: Union[Path, str, bytes]) -> rsa.RSAPublicKey:
    """Load an RSA public key from a PEM public key or PEM certificate.

    Raises:
        KeyLoadError: If no RSA public key can be extracted
    """
    data = _read_bytes(source, "Public key")

    if b"BEGIN CERTIFICATE" in data:
        public_key = load_certificate(data).public_key()
    else:
        try:
            public_key = serialization.load_pem_public_key(data)
        except ValueError as e:
            raise KeyLoadError(f"Failed to load PEM public key: {e}") from e

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise KeyLoadError(
            f"Public key is {type(public_key).__name__}, not RSA."
        )
    return public_key
