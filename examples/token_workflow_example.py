"""SAML Bearer Token Workflow Example.

This example walks through the complete credential workflow against a mock
token endpoint running in a background thread:

- Building a SAML 2.0 bearer assertion
- Signing it with an RSA key and verifying the signature
- Exchanging the signed assertion for an OAuth token pair
- Reusing credentials through the credential cache
- Calling the accounts API with OAuth1-signed requests
- Inspecting categorized error information for a rejected exchange

No files or network access beyond 127.0.0.1 are needed: the signing key is
generated in memory.
"""

import logging
import sys
import threading
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric import rsa
from werkzeug.serving import make_server

# Add src to path for running as standalone script
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cad_client.api import CADClient
from cad_client.auth.cache import CredentialCache
from cad_client.auth.exchanger import CredentialExchanger, SAMLAuthenticator
from cad_client.mock_server.app import create_app
from cad_client.mock_server.config import MockServerConfig
from cad_client.saml.assertion_builder import SAMLAssertionBuilder
from cad_client.saml.signer import SAMLSigner
from cad_client.saml.verifier import SAMLVerifier
from cad_client.transport.http_client import create_session
from cad_client.utils.exceptions import AuthenticationError, create_error_info

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

CONSUMER_KEY = "example-consumer-key"
CONSUMER_SECRET = "example-consumer-secret"
PROVIDER_ID = "provider.example.com"


def start_mock_server(private_key: rsa.RSAPrivateKey):
    """Serve the mock token endpoint on an ephemeral port."""
    config = MockServerConfig(port=0, consumer_key=CONSUMER_KEY, consumer_secret=CONSUMER_SECRET)
    app = create_app(config, verification_key=private_key.public_key())
    server = make_server("127.0.0.1", 0, app, threaded=True)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    base_url = f"http://127.0.0.1:{server.server_port}"
    return server, f"{base_url}{config.token_endpoint}", f"{base_url}{config.api_prefix}"


def example_1_build_and_sign(private_key: rsa.RSAPrivateKey):
    """Example 1: Build, sign and verify an assertion."""
    print("\n" + "=" * 70)
    print("Example 1: Build and Sign a SAML Assertion")
    print("=" * 70)

    builder = SAMLAssertionBuilder(PROVIDER_ID)
    assertion = builder.build("customer-42")
    signed = SAMLSigner(private_key).sign_assertion(assertion)

    print(f"\n✓ Assertion ID:   {signed.assertion_id}")
    print(f"  Subject:        {signed.subject}")
    print(f"  Valid:          {signed.not_before.isoformat()} -> {signed.not_on_or_after.isoformat()}")
    print(f"  DigestValue:    {signed.digest_value}")

    verifier = SAMLVerifier(private_key.public_key())
    print(f"  Signature ok:   {verifier.verify_assertion(signed)}")
    print(f"  Fresh:          {verifier.validate_timestamp_freshness(signed)}")

    return signed


def example_2_exchange(private_key: rsa.RSAPrivateKey, token_url: str, session):
    """Example 2: Exchange a signed assertion for an OAuth token pair."""
    print("\n" + "=" * 70)
    print("Example 2: Exchange Assertion for OAuth Credentials")
    print("=" * 70)

    authenticator = SAMLAuthenticator(
        SAMLAssertionBuilder(PROVIDER_ID),
        SAMLSigner(private_key),
        CredentialExchanger(CONSUMER_KEY, token_url=token_url, session=session),
    )
    credential = authenticator("customer-42")

    print(f"\n✓ Token issued for {credential.principal}")
    print(f"  Token:          {credential.token}")
    print(f"  Expires at:     {credential.expires_at.isoformat()}")

    return authenticator


def example_3_cached_api_calls(authenticator, api_base_url: str, session):
    """Example 3: Call the accounts API through the credential cache."""
    print("\n" + "=" * 70)
    print("Example 3: Cached Credentials and Signed API Calls")
    print("=" * 70)

    with CredentialCache(authenticator) as cache:
        client = CADClient(
            "customer-42",
            cache,
            consumer_key=CONSUMER_KEY,
            consumer_secret=CONSUMER_SECRET,
            base_url=api_base_url,
            session=session,
        )
        for account in client.get_customer_accounts():
            print(f"  • {account.id}: {account.name} {account.balance}")

        # Second call reuses the cached credential
        client.get_customer_accounts()
        print(f"\n✓ Cached principals: {len(cache)}")


def example_4_rejected_exchange(token_url: str, session):
    """Example 4: Inspect a rejected exchange."""
    print("\n" + "=" * 70)
    print("Example 4: Rejected Exchange Diagnostics")
    print("=" * 70)

    # Signed with a key the endpoint does not trust
    untrusted = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    authenticator = SAMLAuthenticator(
        SAMLAssertionBuilder(PROVIDER_ID),
        SAMLSigner(untrusted),
        CredentialExchanger(CONSUMER_KEY, token_url=token_url, session=session),
    )

    try:
        authenticator("customer-42")
    except AuthenticationError as e:
        info = create_error_info(e, principal="customer-42")
        print(f"\n✗ {info.error_type}: {info.message}")
        print(f"  Diagnostic:     {e.diagnostic}")
        print(f"  Category:       {info.category.value}")
        print(f"  Remediation:    {info.remediation}")


def main():
    print("\n" + "=" * 70)
    print("CAD Client - SAML Bearer Token Workflow")
    print("=" * 70)

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    server, token_url, api_base_url = start_mock_server(private_key)
    session = create_session(retry_count=0)

    try:
        example_1_build_and_sign(private_key)
        authenticator = example_2_exchange(private_key, token_url, session)
        example_3_cached_api_calls(authenticator, api_base_url, session)
        example_4_rejected_exchange(token_url, session)
    finally:
        session.close()
        server.shutdown()

    print("\n" + "=" * 70)
    print("All examples completed")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    main()
