"""Configuration schema models using pydantic.

This module defines the configuration structure and validation rules using pydantic.
All configuration values are validated according to the schema defined here.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EndpointsConfig(BaseModel):
    """Configuration for remote endpoint URLs.

    Attributes:
        token_url: SAML bearer assertion token endpoint
        api_base_url: CAD API base URL
    """

    token_url: str = Field(
        default="https://oauth.intuit.com/oauth/v1/get_access_token_by_saml",
        description="SAML assertion to OAuth token endpoint URL",
    )
    api_base_url: str = Field(
        default="https://financialdatafeed.platform.intuit.com/v1",
        description="CAD API base URL",
    )

    @field_validator("token_url", "api_base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL is valid HTTP/HTTPS.

        Raises:
            ValueError: If URL does not start with http:// or https://
        """
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid URL: {v}. Must start with http:// or https://")
        return v


class CredentialsConfig(BaseModel):
    """Application credentials registered with the token endpoint.

    The consumer secret and the private key are better supplied through the
    environment (CAD_CLIENT_CONSUMER_SECRET, CAD_CLIENT_PRIVATE_KEY) than
    stored in the configuration file.

    Attributes:
        consumer_key: OAuth consumer key
        consumer_secret: OAuth consumer secret
        saml_provider_id: Issuer placed in every assertion
        private_key_path: PEM RSA private key file used for signing
        private_key_env_var: Environment variable holding the PEM key when no
            private_key_path is configured
    """

    consumer_key: str = ""
    consumer_secret: str = Field(default="", repr=False)
    saml_provider_id: str = ""
    private_key_path: Optional[Path] = None
    private_key_env_var: str = Field(
        default="CAD_CLIENT_PRIVATE_KEY",
        description="Environment variable holding the PEM private key",
    )


class AssertionConfig(BaseModel):
    """SAML assertion settings.

    Attributes:
        lifetime_minutes: Validity window of each assertion
        audience: Audience restriction; defaults to the SAML provider ID
    """

    lifetime_minutes: int = Field(
        default=10,
        ge=1,
        le=60,
        description="Assertion validity window in minutes",
    )
    audience: Optional[str] = None


class CacheConfig(BaseModel):
    """Credential cache settings.

    Attributes:
        credential_ttl_minutes: How long exchanged credentials are reused
    """

    credential_ttl_minutes: int = Field(
        default=30,
        ge=1,
        description="Credential cache lifetime in minutes",
    )


class TransportConfig(BaseModel):
    """Configuration for HTTP/HTTPS transport.

    Attributes:
        verify_tls: Whether to verify TLS certificates
        ca_bundle: Optional CA bundle path used instead of the system store
        timeout_connect: Connection timeout in seconds
        timeout_read: Read timeout in seconds
        max_retries: Retry attempts for idempotent API requests (never the token POST)
    """

    verify_tls: bool = True
    ca_bundle: Optional[Path] = None
    timeout_connect: int = Field(default=10, ge=1, description="Connection timeout in seconds")
    timeout_read: int = Field(default=30, ge=1, description="Read timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Maximum retry attempts for GET")


class LoggingConfig(BaseModel):
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file
        redact_secrets: Whether to mask tokens, secrets and key material in logs
    """

    level: str = Field(default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL")
    log_file: Path = Field(default=Path("logs/cad-client.log"), description="Log file path")
    redact_secrets: bool = Field(default=True, description="Mask secrets in logs")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level.

        Returns:
            Validated log level (uppercase)

        Raises:
            ValueError: If log level is not valid
        """
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )
        return v_upper


class Config(BaseModel):
    """Root configuration model.

    Example:
        >>> config = Config(credentials={"consumer_key": "key", "saml_provider_id": "idp"})
        >>> config.cache.credential_ttl_minutes
        30
    """

    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    assertion: AssertionConfig = Field(default_factory=AssertionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
