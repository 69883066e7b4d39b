"""CLI commands for the mock token endpoint."""

import logging
from pathlib import Path
from typing import Optional

import click

from cad_client.mock_server.app import run_server
from cad_client.mock_server.config import load_config
from cad_client.utils.exceptions import KeyLoadError

logger = logging.getLogger(__name__)


@click.group(name="mock")
def mock_group() -> None:
    """Mock token endpoint commands."""
    pass


@mock_group.command(name="start")
@click.option("--host", default=None, help="Bind address (default: 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port (default: 8080)")
@click.option(
    "--cert",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Certificate used to verify assertion signatures",
)
@click.option(
    "--consumer-key",
    default=None,
    help="Only accept this consumer key (default: any)",
)
@click.option(
    "--mock-config",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Mock server configuration file (default: mocks/config.json)",
)
def start(
    host: Optional[str],
    port: Optional[int],
    cert: Optional[Path],
    consumer_key: Optional[str],
    mock_config: Optional[Path],
) -> None:
    """Run the mock token endpoint in the foreground.

    Examples:

        cad-client mock start --port 8080 --cert keys/provider.crt
    """
    try:
        config = load_config(mock_config)
    except (ValueError, FileNotFoundError) as e:
        click.echo(click.style("✗", fg="red", bold=True) + f" {e}", err=True)
        raise click.exceptions.Exit(1)

    overrides = {
        "host": host,
        "port": port,
        "signing_cert_path": str(cert) if cert else None,
        "consumer_key": consumer_key,
    }
    config = config.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    click.echo(f"Starting mock token endpoint on http://{config.host}:{config.port}")
    click.echo(f"Token endpoint: {config.token_endpoint}")

    try:
        run_server(config)
    except KeyLoadError as e:
        click.echo(click.style("✗", fg="red", bold=True) + f" {e}", err=True)
        raise click.exceptions.Exit(1)
