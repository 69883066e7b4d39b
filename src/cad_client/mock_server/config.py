"""Configuration management for the mock token endpoint."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_MOCK_CONFIG_PATH = Path("mocks/config.json")

SAMPLE_ACCOUNTS: List[Dict[str, Any]] = [
    {
        "accountId": 75000033008,
        "institutionLoginId": 1000015480,
        "accountNickname": "My Checking",
        "balanceAmount": 1530.42,
        "balanceDate": 1388563200000,
        "status": "ACTIVE",
        "aggrStatusCode": "0",
        "currencyCode": "USD",
        "institutionId": 100000,
    }
]


class MockServerConfig(BaseModel):
    """Mock token endpoint configuration model.

    Configuration precedence:
    1. Environment variables (MOCK_SERVER_* prefix)
    2. JSON config file
    3. Default values

    Attributes:
        signing_cert_path: Certificate whose public key verifies assertions
        consumer_key: Accepted OAuth consumer key; any key is accepted when None
        consumer_secret: Secret used to verify OAuth1-signed API requests
        clock_skew_seconds: Tolerance applied to the assertion validity window
    """

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8080, description="HTTP server port")
    signing_cert_path: str = Field(default="mocks/provider.crt", description="Assertion verification certificate")
    consumer_key: Optional[str] = Field(default=None, description="Accepted consumer key")
    consumer_secret: str = Field(default="mock-consumer-secret", description="Consumer secret for API requests")
    token_endpoint: str = Field(default="/oauth/v1/get_access_token_by_saml", description="Token endpoint path")
    api_prefix: str = Field(default="/v1", description="Mock CAD API path prefix")
    clock_skew_seconds: int = Field(default=0, ge=0, le=600, description="Validity window tolerance")
    log_level: str = Field(default="INFO", description="Logging level")
    accounts: List[Dict[str, Any]] = Field(
        default_factory=lambda: [dict(a) for a in SAMPLE_ACCOUNTS],
        description="Accounts served by the mock /accounts resource",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(valid_levels)}"
            )
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number; 0 asks the OS for a free port."""
        if not 0 <= v <= 65535:
            raise ValueError(f"Invalid port {v}. Must be between 0 and 65535.")
        return v


def load_config(config_file: Optional[Path] = None) -> MockServerConfig:
    """Load mock server configuration from file and environment variables.

    Args:
        config_file: Path to configuration JSON file. Defaults to mocks/config.json

    Returns:
        MockServerConfig instance with merged configuration

    Raises:
        FileNotFoundError: If a non-default config file is specified but not found
        ValueError: If configuration is invalid
    """
    if config_file is None:
        config_file = DEFAULT_MOCK_CONFIG_PATH

    config_data: Dict[str, Any] = {}
    if config_file.exists():
        try:
            with open(config_file, encoding="utf-8") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Failed to parse configuration file '{config_file}': {e}. "
                f"Ensure the file contains valid JSON."
            ) from e
    elif config_file != DEFAULT_MOCK_CONFIG_PATH:
        raise FileNotFoundError(
            f"Configuration file not found: '{config_file}'. "
            f"Ensure the file exists or check the path."
        )

    env_prefix = "MOCK_SERVER_"
    for key in MockServerConfig.model_fields:
        env_key = f"{env_prefix}{key.upper()}"
        # pydantic coerces numeric strings; the accounts list is file-only
        if env_key in os.environ and key != "accounts":
            config_data[key] = os.environ[env_key]

    try:
        return MockServerConfig(**config_data)
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed: {e}") from e
