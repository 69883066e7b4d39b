"""HTTP session factory with connection pooling.

Sessions created here are shared by the credential exchanger and the CAD API
client. Idempotent requests (GET, HEAD, OPTIONS) are retried on connection
errors and 429/5xx answers. POST is never retried, not even after a refused
connection, so a failed token exchange surfaces to the caller after exactly
one attempt.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import MaxRetryError
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 10
DEFAULT_RETRY_COUNT = 3
DEFAULT_BACKOFF_FACTOR = 0.3

RETRY_METHODS = frozenset({"HEAD", "GET", "OPTIONS"})
RETRY_STATUSES = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class SessionConfig:
    """Settings for a pooled session.

    Attributes:
        max_connections: Pool size per host (>= 1)
        retry_count: Retries for idempotent requests
        backoff_factor: Exponential backoff factor between retries
        verify_tls: True, False, or a path to a CA bundle
    """

    max_connections: int = DEFAULT_MAX_CONNECTIONS
    retry_count: int = DEFAULT_RETRY_COUNT
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    verify_tls: Union[bool, str] = True

    def __post_init__(self) -> None:
        if self.max_connections < 1:
            raise ValueError(f"max_connections must be >= 1, got {self.max_connections}")
        if self.retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {self.retry_count}")
        if self.backoff_factor < 0:
            raise ValueError(f"backoff_factor must be >= 0, got {self.backoff_factor}")


class IdempotentRetry(Retry):
    """Retry that never repeats a request outside allowed_methods.

    urllib3 applies allowed_methods to read errors and retryable statuses
    only; connection errors are retried for every method. Here a failed
    POST raises on the first attempt whatever the error.
    """

    def increment(
        self,
        method: Optional[str] = None,
        url: Optional[str] = None,
        response=None,
        error: Optional[Exception] = None,
        _pool=None,
        _stacktrace=None,
    ) -> Retry:
        if error is not None and method is not None and method.upper() not in self.allowed_methods:
            logger.debug(f"Not retrying {method} {url} after {error!r}")
            raise MaxRetryError(_pool, url, error) from error
        return super().increment(
            method, url, response=response, error=error, _pool=_pool, _stacktrace=_stacktrace
        )


def idempotent_retry(retry_count: int, backoff_factor: float) -> Retry:
    """Retry policy limited to RETRY_METHODS, for every kind of failure."""
    return IdempotentRetry(
        total=retry_count,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=RETRY_METHODS,
        raise_on_status=False,
    )


def create_session(
    verify_tls: Union[bool, str] = True,
    max_connections: int = DEFAULT_MAX_CONNECTIONS,
    retry_count: int = DEFAULT_RETRY_COUNT,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
) -> requests.Session:
    """Create a pooled HTTP session.

    Returns:
        Configured requests.Session. Caller is responsible for closing.

    Raises:
        ValueError: If a pool or retry setting is out of range

    Example:
        >>> session = create_session(verify_tls="/etc/ssl/corp-ca.pem")
        >>> try:
        ...     exchanger = CredentialExchanger(consumer_key, session=session)
        ... finally:
        ...     session.close()
    """
    config = SessionConfig(
        max_connections=max_connections,
        retry_count=retry_count,
        backoff_factor=backoff_factor,
        verify_tls=verify_tls,
    )

    adapter = HTTPAdapter(
        pool_connections=config.max_connections,
        pool_maxsize=config.max_connections,
        max_retries=idempotent_retry(config.retry_count, config.backoff_factor),
    )
    session = requests.Session()
    for prefix in ("http://", "https://"):
        session.mount(prefix, adapter)
    session.verify = config.verify_tls

    logger.debug(
        f"HTTP session created: pool_maxsize={config.max_connections}, "
        f"idempotent retries={config.retry_count}, verify_tls={config.verify_tls}"
    )
    return session
