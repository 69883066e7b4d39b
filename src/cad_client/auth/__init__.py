"""Credential exchange, caching and OAuth 1.0a request signing."""

from cad_client.auth.cache import DEFAULT_CACHE_TTL, CredentialCache
from cad_client.auth.exchanger import (
    DEFAULT_TOKEN_URL,
    CredentialExchanger,
    SAMLAuthenticator,
    decode_diagnostic,
)
from cad_client.auth.oauth1 import OAuth1Auth

__all__ = [
    "DEFAULT_CACHE_TTL",
    "DEFAULT_TOKEN_URL",
    "CredentialCache",
    "CredentialExchanger",
    "OAuth1Auth",
    "SAMLAuthenticator",
    "decode_diagnostic",
]
