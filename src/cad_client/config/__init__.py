"""Config module.

This module provides configuration management functionality.
"""

from cad_client.config.manager import (
    build_authenticator,
    build_cache,
    build_session,
    get_logging_config,
    get_request_timeout,
    get_transport_config,
    load_config,
    load_signing_key,
)
from cad_client.config.schema import (
    AssertionConfig,
    CacheConfig,
    Config,
    CredentialsConfig,
    EndpointsConfig,
    LoggingConfig,
    TransportConfig,
)

__all__ = [
    # Main configuration loading
    "load_config",
    # Component wiring
    "build_authenticator",
    "build_cache",
    "build_session",
    "load_signing_key",
    # Helper functions
    "get_logging_config",
    "get_request_timeout",
    "get_transport_config",
    # Configuration models
    "AssertionConfig",
    "CacheConfig",
    "Config",
    "CredentialsConfig",
    "EndpointsConfig",
    "LoggingConfig",
    "TransportConfig",
]
