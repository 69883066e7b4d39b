"""Access credential model returned by the SAML token exchange."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Credential:
    """OAuth 1.0a access credential for one principal.

    Only ever constructed after a fully successful exchange, so a Credential
    is never partially populated.

    Attributes:
        principal: Customer identifier the credential was issued for
        token: oauth_token returned by the token endpoint
        token_secret: oauth_token_secret returned by the token endpoint
        issued_at: When the exchange completed (UTC)
        expires_at: When the credential should no longer be used (UTC)
    """

    principal: str
    token: str
    token_secret: str = field(repr=False)
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """True from expires_at onward; the validity window is half-open."""
        return now >= self.expires_at

    def ttl_seconds(self, now: datetime) -> float:
        """Seconds until expiry, never negative."""
        return max((self.expires_at - now).total_seconds(), 0.0)
