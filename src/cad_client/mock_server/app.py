"""Flask application emulating the SAML token endpoint and a minimal CAD API.

The token endpoint performs the checks the real service does: consumer key,
assertion signature, and validity window. Accepted assertions are answered with
a form-encoded oauth_token/oauth_token_secret pair; rejections are 401 with a
percent-encoded diagnostic in the WWW-Authenticate header.

The /v1/accounts resource only answers requests whose OAuth 1.0a HMAC-SHA1
signature verifies against a token issued by this server.
"""

import base64
import binascii
import logging
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union
from urllib.parse import quote_plus, urlencode

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask, Response, current_app, jsonify, request
from lxml import etree
from oauthlib.common import Request as OAuthRequest
from oauthlib.oauth1.rfc5849 import signature as oauth_signature

from cad_client.mock_server.config import MockServerConfig
from cad_client.saml.assertion_builder import SAML_NS, SAML_TIME_FORMAT
from cad_client.saml.key_manager import load_public_key
from cad_client.saml.verifier import SAMLVerifier
from cad_client.utils.exceptions import SignatureVerificationError

logger = logging.getLogger("cad_client.mock_server")

STATE_KEY = "cad_mock_state"


class MockState:
    """Per-app state: issued tokens and request counters."""

    def __init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self.request_count = 0
        # oauth_token -> (token_secret, subject)
        self.tokens: Dict[str, Tuple[str, str]] = {}


def _state() -> MockState:
    return current_app.extensions[STATE_KEY]


def unauthorized(problem: str, detail: str = "") -> Tuple[Response, int]:
    """Build a 401 answer with a percent-encoded WWW-Authenticate diagnostic."""
    message = f"oauth_problem={problem}"
    if detail:
        message = f"{message}: {detail}"
    logger.warning(f"Rejecting request: {message}")

    response = Response("", mimetype="text/plain")
    response.headers["WWW-Authenticate"] = quote_plus(message)
    return response, 401


def _parse_saml_time(value: Optional[str]) -> datetime:
    if not value:
        raise ValueError("missing timestamp")
    return datetime.strptime(value, SAML_TIME_FORMAT).replace(tzinfo=timezone.utc)


def _assertion_window(root: etree._Element) -> Tuple[datetime, datetime, str]:
    conditions = root.find(f"{{{SAML_NS}}}Conditions")
    if conditions is None:
        raise ValueError("assertion has no Conditions")
    subject = root.findtext(f"{{{SAML_NS}}}Subject/{{{SAML_NS}}}NameID") or ""
    return (
        _parse_saml_time(conditions.get("NotBefore")),
        _parse_saml_time(conditions.get("NotOnOrAfter")),
        subject,
    )


def create_app(
    config: Optional[MockServerConfig] = None,
    verification_key: Optional[Union[rsa.RSAPublicKey, x509.Certificate]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Flask:
    """Create the mock server application.

    Args:
        config: Mock server configuration (defaults used when None)
        verification_key: Public key or certificate verifying assertions;
            loaded from config.signing_cert_path when None
        clock: Time source for validity window checks

    Returns:
        Configured Flask application

    Example:
        >>> app = create_app(MockServerConfig(consumer_key="key"), verification_key=cert)
        >>> client = app.test_client()
    """
    config = config or MockServerConfig()
    if verification_key is None:
        verification_key = load_public_key(Path(config.signing_cert_path))

    verifier = SAMLVerifier(verification_key)
    now = clock or (lambda: datetime.now(timezone.utc))
    skew = timedelta(seconds=config.clock_skew_seconds)

    app = Flask(__name__)
    app.extensions[STATE_KEY] = MockState()

    @app.before_request
    def log_request():
        """Log all incoming requests."""
        state = _state()
        state.request_count += 1
        logger.info(
            f"Request #{state.request_count}: {request.method} {request.path} "
            f"(Content-Length: {request.content_length or 0})"
        )

    @app.route("/health", methods=["GET"])
    def health_check():
        state = _state()
        uptime_seconds = int((datetime.now(timezone.utc) - state.started_at).total_seconds())
        return jsonify(
            {
                "status": "healthy",
                "endpoints": ["/health", config.token_endpoint, f"{config.api_prefix}/accounts"],
                "uptime_seconds": uptime_seconds,
                "request_count": state.request_count,
                "issued_tokens": len(state.tokens),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ), 200

    @app.route(config.token_endpoint, methods=["POST"])
    def get_access_token_by_saml():
        encoded = request.form.get("saml_assertion", "")
        consumer_key = request.form.get("oauth_consumer_key", "")

        if not encoded or not consumer_key:
            return unauthorized("parameter_absent", "saml_assertion and oauth_consumer_key are required")

        if config.consumer_key is not None and consumer_key != config.consumer_key:
            return unauthorized("consumer_key_unknown")

        try:
            xml_bytes = base64.urlsafe_b64decode(encoded.encode("ascii"))
            root = etree.fromstring(xml_bytes)
        except (binascii.Error, ValueError, etree.XMLSyntaxError) as e:
            return unauthorized("invalid_assertion", f"cannot decode assertion: {e}")

        try:
            verifier.verify_xml(xml_bytes)
        except SignatureVerificationError as e:
            return unauthorized("signature_invalid", str(e))

        try:
            not_before, not_on_or_after, subject = _assertion_window(root)
        except ValueError as e:
            return unauthorized("invalid_assertion", str(e))

        current = now()
        if current + skew < not_before:
            return unauthorized("assertion_not_yet_valid")
        if current - skew >= not_on_or_after:
            return unauthorized("assertion_expired")

        token = secrets.token_urlsafe(24)
        token_secret = secrets.token_urlsafe(30)
        _state().tokens[token] = (token_secret, subject)
        logger.info(f"Issued access token for subject={subject}")

        body = urlencode({"oauth_token": token, "oauth_token_secret": token_secret})
        return Response(body, mimetype="application/x-www-form-urlencoded"), 200

    @app.route(f"{config.api_prefix}/accounts", methods=["GET"])
    def accounts():
        header = request.headers.get("Authorization", "")
        if not header.startswith("OAuth "):
            return unauthorized("parameter_absent", "OAuth Authorization header required")

        try:
            params = oauth_signature.collect_parameters(
                uri_query=request.query_string.decode("utf-8"),
                headers={"Authorization": header},
                exclude_oauth_signature=False,
            )
        except ValueError:
            return unauthorized("parameter_rejected", "Malformed OAuth parameters")

        oauth = dict(params)
        issued = _state().tokens.get(oauth.get("oauth_token", ""))
        if issued is None:
            return unauthorized("token_rejected")

        signed_request = OAuthRequest(request.url, http_method=request.method)
        signed_request.params = [(k, v) for k, v in params if k != "oauth_signature"]
        signed_request.signature = oauth.get("oauth_signature", "")
        if not oauth_signature.verify_hmac_sha1(signed_request, config.consumer_secret, issued[0]):
            return unauthorized("signature_invalid", "OAuth signature does not verify")

        return jsonify({"accounts": config.accounts}), 200

    logger.info(f"Mock token endpoint initialized at {config.token_endpoint}")
    return app


def run_server(config: Optional[MockServerConfig] = None, debug: bool = False) -> None:
    """Run the mock server with Flask's development server."""
    config = config or MockServerConfig()
    app = create_app(config)
    logger.info(f"Starting CAD mock server on http://{config.host}:{config.port}")
    logger.info(f"Health check available at: http://{config.host}:{config.port}/health")
    app.run(host=config.host, port=config.port, debug=debug, use_reloader=False)
