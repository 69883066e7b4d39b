"""Mock SAML token endpoint and CAD API for local testing."""

from cad_client.mock_server.app import create_app, run_server
from cad_client.mock_server.config import MockServerConfig, load_config

__all__ = ["MockServerConfig", "create_app", "load_config", "run_server"]
