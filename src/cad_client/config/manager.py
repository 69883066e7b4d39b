"""Configuration manager for loading configuration and wiring components.

This module provides configuration loading with JSON files, .env files and
environment variable overrides, plus factories that assemble the signing key,
assertion builder, signer, exchanger and credential cache from a Config.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

import requests
from cryptography.hazmat.primitives.asymmetric import rsa
from dotenv import load_dotenv
from pydantic import ValidationError

from cad_client.auth.cache import CredentialCache
from cad_client.auth.exchanger import CredentialExchanger, SAMLAuthenticator
from cad_client.config.defaults import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH
from cad_client.config.schema import Config, LoggingConfig, TransportConfig
from cad_client.saml.assertion_builder import SAMLAssertionBuilder
from cad_client.saml.key_manager import load_private_key, load_private_key_from_env
from cad_client.saml.signer import SAMLSigner
from cad_client.transport.http_client import create_session
from cad_client.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variable prefix for all configuration overrides
ENV_PREFIX = "CAD_CLIENT_"

# (environment suffix, section, field, converter)
_ENV_OVERRIDES = [
    ("TOKEN_URL", "endpoints", "token_url", str),
    ("API_BASE_URL", "endpoints", "api_base_url", str),
    ("CONSUMER_KEY", "credentials", "consumer_key", str),
    ("CONSUMER_SECRET", "credentials", "consumer_secret", str),
    ("SAML_PROVIDER_ID", "credentials", "saml_provider_id", str),
    ("PRIVATE_KEY_PATH", "credentials", "private_key_path", str),
    ("ASSERTION_LIFETIME_MINUTES", "assertion", "lifetime_minutes", int),
    ("AUDIENCE", "assertion", "audience", str),
    ("CREDENTIAL_TTL_MINUTES", "cache", "credential_ttl_minutes", int),
    ("VERIFY_TLS", "transport", "verify_tls", "bool"),
    ("CA_BUNDLE", "transport", "ca_bundle", str),
    ("TIMEOUT_CONNECT", "transport", "timeout_connect", int),
    ("TIMEOUT_READ", "transport", "timeout_read", int),
    ("MAX_RETRIES", "transport", "max_retries", int),
    ("LOG_LEVEL", "logging", "level", str),
    ("LOG_FILE", "logging", "log_file", str),
    ("REDACT_SECRETS", "logging", "redact_secrets", "bool"),
]


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded with the following precedence (highest to lowest):
    1. CLI arguments (handled by caller)
    2. Environment variables (CAD_CLIENT_* prefix, .env file supported)
    3. Configuration file (JSON)
    4. Default values

    Args:
        config_path: Path to configuration file. If None, uses ./config/config.json

    Returns:
        Validated Config instance

    Raises:
        ConfigurationError: If configuration is invalid or malformed

    Example:
        >>> config = load_config(Path("config/config.json"))
        >>> token_url = config.endpoints.token_url
    """
    # Load .env file if present in project root
    load_dotenv()

    if config_path is None:
        config_path = Path(DEFAULT_CONFIG_PATH)

    config_dict = _load_config_file(config_path)

    # Secrets are checked before env overrides so only file contents trigger it
    _check_sensitive_values(config_dict, config_path)

    try:
        config_dict = _apply_env_overrides(config_dict)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid {ENV_PREFIX}* environment variable value: {e}"
        ) from e

    try:
        return Config(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed:\n{e}\n\n"
            f"Fix: Check your configuration file at {config_path} and ensure all "
            f"values match the expected format."
        ) from e


def _load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration file or return defaults.

    Raises:
        ConfigurationError: If JSON is malformed or the file cannot be read
    """
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_dict = json.load(f)
            logger.info(f"Loaded configuration from {config_path}")
            return config_dict
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {config_path}\n"
                f"Error: {e}\n"
                f"Fix: Check JSON syntax at line {e.lineno}, column {e.colno}"
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read config file: {config_path}\n"
                f"Error: {e}\n"
                f"Fix: Check file permissions and path"
            ) from e

    logger.info(f"Config file not found: {config_path}. Using default configuration.")
    # Deep copy so defaults are never mutated
    return json.loads(json.dumps(DEFAULT_CONFIG))


def _apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides with the CAD_CLIENT_ prefix.

    Environment variables follow the pattern CAD_CLIENT_<FIELD>, for example
    CAD_CLIENT_CONSUMER_KEY or CAD_CLIENT_LOG_LEVEL.

    Raises:
        ValueError: If a numeric override cannot be parsed
    """
    for suffix, section, field_name, converter in _ENV_OVERRIDES:
        if value := os.getenv(f"{ENV_PREFIX}{suffix}"):
            if converter == "bool":
                converted: Any = _parse_bool(value)
            else:
                converted = converter(value)
            config_dict.setdefault(section, {})[field_name] = converted
            logger.debug(f"Override: {field_name} from environment")

    return config_dict


def _parse_bool(value: str) -> bool:
    """Parse boolean value from string (case-insensitive)."""
    return value.lower() in ("true", "1", "yes", "on")


def _check_sensitive_values(config_dict: dict[str, Any], config_path: Path) -> None:
    """Warn when secrets are stored in the configuration file."""
    credentials = config_dict.get("credentials", {})
    if credentials.get("consumer_secret"):
        logger.warning(
            f"WARNING: consumer_secret found in configuration file {config_path}! "
            f"Secrets should be stored in environment variables, not config files. "
            f"Use the {ENV_PREFIX}CONSUMER_SECRET environment variable instead."
        )
    if "private_key" in credentials:
        logger.warning(
            f"WARNING: private key material found in configuration file {config_path}! "
            f"Use private_key_path or the {credentials.get('private_key_env_var', ENV_PREFIX + 'PRIVATE_KEY')} "
            f"environment variable instead."
        )


def get_transport_config(config: Config) -> TransportConfig:
    return config.transport


def get_logging_config(config: Config) -> LoggingConfig:
    return config.logging


def get_request_timeout(config: Config) -> tuple[int, int]:
    """Return the (connect, read) timeout tuple passed to requests."""
    return (config.transport.timeout_connect, config.transport.timeout_read)


def build_session(config: Config) -> requests.Session:
    """Create a pooled HTTP session honoring the transport configuration."""
    transport = config.transport
    verify: Union[bool, str] = transport.verify_tls
    if transport.verify_tls and transport.ca_bundle is not None:
        verify = str(transport.ca_bundle)
    if not transport.verify_tls:
        logger.warning("TLS certificate verification is disabled")

    return create_session(verify_tls=verify, retry_count=transport.max_retries)


def load_signing_key(config: Config) -> rsa.RSAPrivateKey:
    """Load the RSA signing key from private_key_path or the key environment variable.

    Raises:
        KeyLoadError: If the key cannot be loaded
    """
    credentials = config.credentials
    if credentials.private_key_path is not None:
        return load_private_key(credentials.private_key_path)
    return load_private_key_from_env(credentials.private_key_env_var)


def _require_credentials(config: Config) -> None:
    missing = [
        name
        for name in ("consumer_key", "saml_provider_id")
        if not getattr(config.credentials, name)
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required credentials: {', '.join(missing)}. "
            f"Set them in the configuration file or via "
            f"{', '.join(ENV_PREFIX + name.upper() for name in missing)}."
        )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_authenticator(
    config: Config,
    session: Optional[requests.Session] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> SAMLAuthenticator:
    """Assemble key, builder, signer and exchanger from configuration.

    Raises:
        ConfigurationError: If consumer_key or saml_provider_id is missing
        KeyLoadError: If the signing key cannot be loaded
    """
    _require_credentials(config)

    builder = SAMLAssertionBuilder(
        issuer=config.credentials.saml_provider_id,
        lifetime=timedelta(minutes=config.assertion.lifetime_minutes),
        audience=config.assertion.audience,
        clock=clock,
    )
    signer = SAMLSigner(load_signing_key(config))
    exchanger = CredentialExchanger(
        consumer_key=config.credentials.consumer_key,
        token_url=config.endpoints.token_url,
        session=session or build_session(config),
        timeout=get_request_timeout(config),
        credential_ttl=timedelta(minutes=config.cache.credential_ttl_minutes),
        clock=clock,
    )
    return SAMLAuthenticator(builder, signer, exchanger)


def build_cache(
    config: Config,
    session: Optional[requests.Session] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> CredentialCache:
    """Assemble a CredentialCache backed by a configured SAMLAuthenticator.

    The cache, the assertion builder and the exchanger all read the same
    clock, which defaults to the current UTC time.

    Example:
        >>> cache = build_cache(load_config())
        >>> credential = cache.get_or_create("customer-42")
    """
    if clock is None:
        clock = utc_now
    authenticator = build_authenticator(config, session=session, clock=clock)
    return CredentialCache(
        authenticator,
        ttl=timedelta(minutes=config.cache.credential_ttl_minutes),
        clock=clock,
    )
