"""Per-principal credential cache.

Credentials are cached by customer identifier so repeated API calls for the
same customer reuse one access token instead of signing and exchanging a new
assertion each time. Each entry is evicted by a background timer once its
lifetime elapses; lookups additionally compare against the injected clock so an
expired entry is never returned even if its timer has not fired yet.

A single lock guards the mapping and is held across the whole
build/sign/exchange of a miss. Two concurrent misses for the same principal
therefore produce exactly one exchange; misses for different principals are
serialized as well.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from cad_client.models.credentials import Credential
from cad_client.utils.exceptions import CacheClosedError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = timedelta(minutes=30)

Authenticator = Callable[[str], Credential]


@dataclass
class _CacheEntry:
    credential: Credential
    expires_at: datetime
    timer: threading.Timer


class CredentialCache:
    """Thread-safe principal -> Credential cache with timed eviction.

    Attributes:
        authenticator: Callable producing a fresh Credential for a principal
            (typically a SAMLAuthenticator)
        ttl: Maximum time an entry is kept; an entry never outlives the
            credential's own expires_at

    Entry expiry compares the credential's expires_at, which the
    authenticator derives from its own clock, against this cache's clock.
    Pass the same clock to the cache, the assertion builder and the
    exchanger; build_cache() does this.

    Example:
        >>> with CredentialCache(authenticator) as cache:
        ...     credential = cache.get_or_create("customer-42")
        ...     same = cache.get_or_create("customer-42")  # no network call
        >>> assert credential is same
    """

    def __init__(
        self,
        authenticator: Authenticator,
        ttl: timedelta = DEFAULT_CACHE_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValidationError(f"Cache TTL must be positive, got {ttl!r}")

        self.authenticator = authenticator
        self.ttl = ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get_or_create(self, principal: str) -> Credential:
        """Return a valid credential for principal, exchanging a new one on a miss.

        Args:
            principal: Customer identifier

        Returns:
            Cached or freshly exchanged Credential

        Raises:
            ValidationError: If principal is empty (no network activity happens)
            CacheClosedError: If close() has been called
            AuthenticationError, SAMLError, requests.RequestException: From the
                authenticator; the cache is left unchanged
        """
        if not principal or not isinstance(principal, str):
            raise ValidationError(
                f"Customer identifier must be a non-empty string, got: {principal!r}"
            )

        with self._lock:
            if self._closed:
                raise CacheClosedError("Credential cache is closed")

            now = self._clock()
            entry = self._entries.get(principal)
            if entry is not None:
                if now < entry.expires_at:
                    logger.debug(f"Credential cache hit: principal={principal}")
                    return entry.credential
                logger.debug(f"Cached credential expired: principal={principal}")
                self._remove_locked(principal)

            logger.info(f"Credential cache miss, authenticating principal={principal}")
            credential = self.authenticator(principal)

            stored_at = self._clock()
            expires_at = min(credential.expires_at, stored_at + self.ttl)
            self._store_locked(principal, credential, expires_at, stored_at)
            return credential

    def _store_locked(
        self,
        principal: str,
        credential: Credential,
        expires_at: datetime,
        now: datetime,
    ) -> None:
        delay = max((expires_at - now).total_seconds(), 0.0)
        timer = threading.Timer(delay, self._evict, args=(principal, credential))
        timer.daemon = True
        self._entries[principal] = _CacheEntry(credential, expires_at, timer)
        timer.start()
        logger.debug(f"Cached credential for principal={principal}, evicting in {delay:.0f}s")

    def _remove_locked(self, principal: str) -> Optional[_CacheEntry]:
        entry = self._entries.pop(principal, None)
        if entry is not None:
            entry.timer.cancel()
        return entry

    def _evict(self, principal: str, credential: Credential) -> None:
        with self._lock:
            entry = self._entries.get(principal)
            # A newer credential may have replaced this one since the timer started
            if entry is not None and entry.credential is credential:
                del self._entries[principal]
                logger.debug(f"Evicted cached credential: principal={principal}")

    def invalidate(self, principal: str) -> bool:
        """Drop the cached credential for principal.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            removed = self._remove_locked(principal) is not None
        if removed:
            logger.info(f"Invalidated cached credential: principal={principal}")
        return removed

    def clear(self) -> None:
        """Drop all cached credentials and cancel their eviction timers."""
        with self._lock:
            for principal in list(self._entries):
                self._remove_locked(principal)

    def close(self) -> None:
        """Clear the cache and refuse further use."""
        with self._lock:
            for principal in list(self._entries):
                self._remove_locked(principal)
            self._closed = True
        logger.debug("Credential cache closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, principal: object) -> bool:
        with self._lock:
            entry = self._entries.get(principal)
            return entry is not None and self._clock() < entry.expires_at

    def __enter__(self) -> "CredentialCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
