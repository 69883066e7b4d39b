"""Main CLI entry point for the CAD client.

This module provides the main Click command group for the cad-client CLI.
"""

from pathlib import Path
from typing import Optional

import click

from cad_client import __version__
from cad_client.cli.api_commands import accounts_group
from cad_client.cli.mock_commands import mock_group
from cad_client.cli.saml_commands import saml_group
from cad_client.cli.token_commands import token_group
from cad_client.config import load_config
from cad_client.logging_audit import configure_logging
from cad_client.utils.exceptions import ConfigurationError


@click.group()
@click.version_option(version=__version__, prog_name="cad-client")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: ./config/config.json)",
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging (DEBUG level)")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to log file (overrides config file)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: bool,
    log_file: Optional[Path],
) -> None:
    """CAD client - SAML bearer authentication for the customer account data API.

    Common usage:

        # Sign an assertion and exchange it for an access token
        cad-client token exchange --customer-id 42

        # List a customer's accounts
        cad-client accounts list --customer-id 42

        # Run the mock token endpoint locally
        cad-client mock start --cert keys/provider.crt

    Use --help with any command for more information.
    """
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
    except ConfigurationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        ctx.exit(1)

    ctx.obj["config"] = config_obj
    ctx.obj["verbose"] = verbose

    # CLI flags > config file > defaults
    log_level = "DEBUG" if verbose else config_obj.logging.level
    log_file_path = log_file if log_file else config_obj.logging.log_file

    configure_logging(
        level=log_level,
        log_file=log_file_path,
        redact_secrets=config_obj.logging.redact_secrets,
    )


cli.add_command(accounts_group)
cli.add_command(mock_group)
cli.add_command(saml_group)
cli.add_command(token_group)


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command()
@click.argument("config_file", type=click.Path(exists=True, path_type=Path))
def validate(config_file: Path) -> None:
    """Validate a configuration file.

    Example:
        cad-client config validate config/config.json
    """
    try:
        config_obj = load_config(config_file)
    except ConfigurationError as e:
        click.echo(click.style("✗", fg="red", bold=True) + " Configuration validation failed")
        click.echo(f"\n{e}", err=True)
        raise click.exceptions.Exit(1)

    credentials = config_obj.credentials
    click.echo(click.style("✓", fg="green", bold=True) + " Configuration is valid")
    click.echo(f"\nConfiguration file: {config_file}")
    click.echo("\nEndpoints:")
    click.echo(f"  Token URL:        {config_obj.endpoints.token_url}")
    click.echo(f"  API base URL:     {config_obj.endpoints.api_base_url}")

    click.echo("\nCredentials:")
    click.echo(f"  Consumer key:     {credentials.consumer_key or 'Not configured'}")
    click.echo(f"  Consumer secret:  {'Configured' if credentials.consumer_secret else 'Not configured'}")
    click.echo(f"  SAML provider ID: {credentials.saml_provider_id or 'Not configured'}")
    click.echo(
        f"  Private key:      {credentials.private_key_path or 'from $' + credentials.private_key_env_var}"
    )

    click.echo("\nAssertion / cache:")
    click.echo(f"  Lifetime:         {config_obj.assertion.lifetime_minutes} min")
    click.echo(f"  Credential TTL:   {config_obj.cache.credential_ttl_minutes} min")

    click.echo("\nTransport:")
    click.echo(f"  Verify TLS:       {config_obj.transport.verify_tls}")
    click.echo(
        f"  Timeouts:         {config_obj.transport.timeout_connect}s connect, "
        f"{config_obj.transport.timeout_read}s read"
    )

    click.echo("\nLogging:")
    click.echo(f"  Level:            {config_obj.logging.level}")
    click.echo(f"  Log file:         {config_obj.logging.log_file}")
    click.echo(f"  Redact secrets:   {config_obj.logging.redact_secrets}")


cli.add_command(config)


if __name__ == "__main__":
    cli()
