"""OAuth 1.0a HMAC-SHA1 request signing for the CAD API.

Every API request carries an Authorization header signed with the consumer
secret and the token secret obtained from the SAML exchange. Signing itself
is done by requests-oauthlib.
"""

from typing import Any, Optional

from oauthlib.oauth1 import SIGNATURE_HMAC_SHA1, SIGNATURE_TYPE_AUTH_HEADER
from requests_oauthlib import OAuth1

from cad_client.models.credentials import Credential


class OAuth1Auth(OAuth1):
    """requests auth hook bound to an exchanged Credential.

    Extra keyword arguments (nonce, timestamp) go to the oauthlib client.

    Example:
        >>> auth = OAuth1Auth("consumer-key", "consumer-secret", credential)
        >>> session.get(f"{base_url}/accounts", auth=auth)
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        credential: Credential,
        realm: Optional[str] = None,
        **client_kwargs: Any,
    ) -> None:
        super().__init__(
            consumer_key,
            client_secret=consumer_secret,
            resource_owner_key=credential.token,
            resource_owner_secret=credential.token_secret,
            signature_method=SIGNATURE_HMAC_SHA1,
            signature_type=SIGNATURE_TYPE_AUTH_HEADER,
            realm=realm,
            **client_kwargs,
        )
        self.credential = credential
