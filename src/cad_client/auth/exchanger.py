"""SAML bearer assertion to OAuth 1.0a credential exchange.

The signed assertion is base64url-encoded and form-POSTed to the token
endpoint together with the consumer key. A 200 answer carries a form-encoded
body with oauth_token and oauth_token_secret; any other status is an
authentication failure whose diagnostic text travels in the WWW-Authenticate
header.

The exchange is never retried here. Transport errors raised by requests
(connection refused, TLS failure, timeout) reach the caller unchanged, and the
session's own TLS and timeout configuration is used as supplied.
"""

import base64
import binascii
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple, Union
from urllib.parse import parse_qs, unquote_plus

import requests

from cad_client.models.credentials import Credential
from cad_client.models.saml import SAMLAssertion
from cad_client.saml.assertion_builder import SAMLAssertionBuilder
from cad_client.saml.signer import SAMLSigner
from cad_client.utils.exceptions import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URL = "https://oauth.intuit.com/oauth/v1/get_access_token_by_saml"

Timeout = Union[float, Tuple[float, float]]


def encode_assertion(xml_content: str) -> str:
    """Encode signed assertion XML as padded base64url text."""
    return base64.urlsafe_b64encode(xml_content.encode("utf-8")).decode("ascii")


def decode_diagnostic(header_value: Optional[str]) -> str:
    """Decode the diagnostic text the token endpoint puts in WWW-Authenticate.

    The header is percent-encoded. Some deployments additionally base64-encode
    the message; when the unquoted value is valid base64 of UTF-8 text the
    decoded text is returned, otherwise the unquoted value itself.

    Example:
        >>> decode_diagnostic("invalid+signature")
        'invalid signature'
    """
    if not header_value:
        return ""

    text = unquote_plus(header_value).strip()

    try:
        decoded = base64.b64decode(text, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return text

    if decoded and decoded.isprintable():
        return decoded
    return text


def parse_token_response(body: str) -> Tuple[str, str]:
    """Extract oauth_token and oauth_token_secret from a form-encoded body.

    Raises:
        AuthenticationError: If either value is missing
    """
    values = parse_qs(body)
    token = values.get("oauth_token", [""])[0]
    token_secret = values.get("oauth_token_secret", [""])[0]

    if not token or not token_secret:
        raise AuthenticationError(
            "Token endpoint answered 200 but the response lacks "
            "oauth_token/oauth_token_secret",
            status_code=200,
        )
    return token, token_secret


class CredentialExchanger:
    """Exchange signed SAML assertions for OAuth 1.0a access credentials.

    Attributes:
        consumer_key: OAuth consumer key registered with the token endpoint
        token_url: Token endpoint URL
        session: requests session used for the POST (TLS settings are the caller's)
        timeout: Passed straight through to the session, never defaulted here
        credential_ttl: Fixed credential lifetime; when None the assertion's
            NotOnOrAfter is used as expiry

    The clock stamps issued_at and expires_at and must be the same clock the
    assertion builder and the CredentialCache read.

    Example:
        >>> exchanger = CredentialExchanger("consumer-key", session=requests.Session())
        >>> credential = exchanger.exchange(signed_assertion)
        >>> print(credential.token)
    """

    def __init__(
        self,
        consumer_key: str,
        token_url: str = DEFAULT_TOKEN_URL,
        session: Optional[requests.Session] = None,
        timeout: Optional[Timeout] = None,
        credential_ttl: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if not consumer_key:
            raise ValidationError("consumer_key must be a non-empty string")

        if session is None:
            from cad_client.transport.http_client import create_session

            session = create_session()

        self.consumer_key = consumer_key
        self.token_url = token_url
        self.session = session
        self.timeout = timeout
        self.credential_ttl = credential_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def exchange(self, saml_assertion: SAMLAssertion) -> Credential:
        """POST a signed assertion to the token endpoint and return the credential.

        Args:
            saml_assertion: Signed assertion produced by SAMLSigner

        Returns:
            Credential for the assertion's subject

        Raises:
            ValidationError: If the assertion is not signed
            AuthenticationError: If the endpoint answers with a non-200 status
                or a 200 without both token values
            requests.RequestException: Transport failures, unmodified
        """
        if not saml_assertion.is_signed:
            raise ValidationError(
                f"Assertion {saml_assertion.assertion_id} is not signed. "
                f"Sign it with SAMLSigner before exchanging it."
            )

        form = {
            "saml_assertion": encode_assertion(saml_assertion.xml_content),
            "oauth_consumer_key": self.consumer_key,
        }

        logger.info(
            f"Requesting access token for subject={saml_assertion.subject} "
            f"(assertion {saml_assertion.assertion_id}) from {self.token_url}"
        )

        response = self.session.post(self.token_url, data=form, timeout=self.timeout)

        if response.status_code != 200:
            diagnostic = decode_diagnostic(response.headers.get("WWW-Authenticate"))
            logger.error(
                f"Token endpoint rejected assertion {saml_assertion.assertion_id}: "
                f"HTTP {response.status_code} {response.reason} {diagnostic}"
            )
            raise AuthenticationError(
                f"Authentication error: {response.status_code} {response.reason} {diagnostic}".rstrip(),
                status_code=response.status_code,
                diagnostic=diagnostic,
            )

        token, token_secret = parse_token_response(response.text)

        issued_at = self._clock()
        if self.credential_ttl is not None:
            expires_at = issued_at + self.credential_ttl
        else:
            expires_at = saml_assertion.not_on_or_after

        logger.info(
            f"Access token issued for subject={saml_assertion.subject}, "
            f"expires={expires_at.isoformat()}"
        )

        return Credential(
            principal=saml_assertion.subject,
            token=token,
            token_secret=token_secret,
            issued_at=issued_at,
            expires_at=expires_at,
        )


class SAMLAuthenticator:
    """Build, sign and exchange an assertion for one principal.

    Instances are callables of principal -> Credential, which is the shape
    CredentialCache expects.

    The builder and exchanger are expected to share one clock with the cache
    wrapping this authenticator; config.build_cache() wires them that way.
    """

    def __init__(
        self,
        builder: SAMLAssertionBuilder,
        signer: SAMLSigner,
        exchanger: CredentialExchanger,
    ) -> None:
        self.builder = builder
        self.signer = signer
        self.exchanger = exchanger

    def authenticate(self, principal: str) -> Credential:
        assertion = self.builder.build(principal)
        signed = self.signer.sign_assertion(assertion)
        return self.exchanger.exchange(signed)

    __call__ = authenticate
