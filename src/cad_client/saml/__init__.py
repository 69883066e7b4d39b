"""SAML 2.0 bearer assertion generation, signing, and verification.

This module provides functionality for:
- Building unsigned SAML 2.0 assertions for a customer identifier
- Signing them with an enveloped RSA-SHA1 XML signature (exclusive C14N)
- Verifying signatures and validity windows
- Loading RSA signing keys and verification certificates
"""

from cad_client.saml.assertion_builder import (
    SAMLAssertionBuilder,
    generate_assertion_id,
    generate_saml_timestamps,
)
from cad_client.saml.key_manager import (
    load_certificate,
    load_private_key,
    load_private_key_from_env,
    load_public_key,
)
from cad_client.saml.signer import SAMLSigner, canonicalize, compute_digest
from cad_client.saml.verifier import SAMLVerifier, verify_with_signxml

__all__ = [
    # Assertion construction
    "SAMLAssertionBuilder",
    "generate_assertion_id",
    "generate_saml_timestamps",
    # Signing
    "SAMLSigner",
    "canonicalize",
    "compute_digest",
    # Verification
    "SAMLVerifier",
    "verify_with_signxml",
    # Key management
    "load_certificate",
    "load_private_key",
    "load_private_key_from_env",
    "load_public_key",
]
