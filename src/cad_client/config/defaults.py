"""Default configuration values.

This module defines the default configuration values used when no configuration
file is provided or when configuration values are not specified.
"""

from typing import Any

# Default configuration dictionary
# This is used as a fallback when no configuration file is present
DEFAULT_CONFIG: dict[str, Any] = {
    "endpoints": {
        "token_url": "https://oauth.intuit.com/oauth/v1/get_access_token_by_saml",
        "api_base_url": "https://financialdatafeed.platform.intuit.com/v1",
    },
    "credentials": {
        # No default credentials - must be provided by user
        "consumer_key": "",
        "saml_provider_id": "",
        "private_key_path": None,
        "private_key_env_var": "CAD_CLIENT_PRIVATE_KEY",
    },
    "assertion": {
        # Assertions are valid for 10 minutes
        "lifetime_minutes": 10,
        # Audience defaults to the SAML provider ID
        "audience": None,
    },
    "cache": {
        # Exchanged credentials are reused for 30 minutes
        "credential_ttl_minutes": 30,
    },
    "transport": {
        "verify_tls": True,
        "ca_bundle": None,
        "timeout_connect": 10,
        "timeout_read": 30,
        "max_retries": 3,
    },
    "logging": {
        "level": "INFO",
        "log_file": "logs/cad-client.log",
        # Tokens and secrets are masked unless the user opts out
        "redact_secrets": True,
    },
}

# Default configuration file path
DEFAULT_CONFIG_PATH = "config/config.json"
