"""Integration test fixtures and configuration.

This module provides a live mock token endpoint for integration tests. The
Flask application is served by a werkzeug server on an ephemeral port in a
background thread, so tests talk to it over real HTTP with requests.
"""

import logging
import threading
from typing import Iterator

import pytest
import requests
from werkzeug.serving import make_server

from cad_client.config.schema import Config
from cad_client.mock_server.app import create_app
from cad_client.mock_server.config import MockServerConfig

logger = logging.getLogger(__name__)

CONSUMER_KEY = "integration-consumer-key"
CONSUMER_SECRET = "integration-consumer-secret"
PROVIDER_ID = "provider.example.com"


class LiveMockServer:
    """Handle on a running mock server."""

    def __init__(self, app, config: MockServerConfig) -> None:
        self.app = app
        self.config = config
        self._server = make_server("127.0.0.1", 0, app, threaded=True)
        self.port = self._server.server_port
        self.base_url = f"http://127.0.0.1:{self.port}"
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def token_url(self) -> str:
        return f"{self.base_url}{self.config.token_endpoint}"

    @property
    def api_base_url(self) -> str:
        return f"{self.base_url}{self.config.api_prefix}"

    def start(self) -> None:
        self._thread.start()
        logger.info(f"Mock server listening on {self.base_url}")

    def stop(self) -> None:
        self._server.shutdown()
        self._thread.join(timeout=5)


@pytest.fixture
def mock_server_config() -> MockServerConfig:
    return MockServerConfig(
        port=0,
        consumer_key=CONSUMER_KEY,
        consumer_secret=CONSUMER_SECRET,
    )


@pytest.fixture
def live_server(mock_server_config, certificate) -> Iterator[LiveMockServer]:
    """Mock token endpoint and accounts resource served over HTTP."""
    app = create_app(mock_server_config, verification_key=certificate)
    server = LiveMockServer(app, mock_server_config)
    server.start()

    response = requests.get(f"{server.base_url}/health", timeout=5)
    assert response.status_code == 200

    yield server
    server.stop()


@pytest.fixture
def client_config(live_server, key_file) -> Config:
    """Client configuration pointing at the live mock server."""
    return Config(
        endpoints={"token_url": live_server.token_url, "api_base_url": live_server.api_base_url},
        credentials={
            "consumer_key": CONSUMER_KEY,
            "consumer_secret": CONSUMER_SECRET,
            "saml_provider_id": PROVIDER_ID,
            "private_key_path": str(key_file),
        },
        transport={"timeout_connect": 5, "timeout_read": 10, "max_retries": 0},
    )
