"""CLI commands for the SAML to OAuth credential exchange."""

import logging
from datetime import datetime, timezone

import click
import requests

from cad_client.config import build_authenticator
from cad_client.utils.exceptions import CADClientError, create_error_info

logger = logging.getLogger(__name__)


def mask(value: str, visible: int = 4) -> str:
    """Show only the first characters of a secret."""
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)


def report_failure(error: Exception, principal: str) -> None:
    """Print categorized error information and exit with status 1."""
    info = create_error_info(error, principal=principal)
    click.echo(
        click.style("✗", fg="red", bold=True) + f" {info.error_type}: {info.message}",
        err=True,
    )
    click.echo(f"  Category:    {info.category.value}", err=True)
    click.echo(f"  Retryable:   {'yes' if info.is_retryable else 'no'}", err=True)
    click.echo(f"  Remediation: {info.remediation}", err=True)
    if info.technical_details:
        click.echo(f"  Details:     {info.technical_details}", err=True)
    raise click.exceptions.Exit(1)


@click.group(name="token")
def token_group() -> None:
    """Access token commands."""
    pass


@token_group.command(name="exchange")
@click.option("--customer-id", required=True, help="Customer identifier (SAML subject)")
@click.option("--show-secret", is_flag=True, help="Print the token secret unmasked")
@click.pass_context
def exchange(ctx: click.Context, customer_id: str, show_secret: bool) -> None:
    """Sign an assertion for a customer and exchange it for an access token.

    Examples:

        cad-client --config config/config.json token exchange --customer-id 42
    """
    config = ctx.obj["config"]

    try:
        authenticator = build_authenticator(config)
        credential = authenticator(customer_id)
    except (CADClientError, requests.RequestException) as e:
        logger.error(f"Token exchange failed for customer={customer_id}: {e}")
        report_failure(e, customer_id)

    secret = credential.token_secret if show_secret else mask(credential.token_secret)

    click.echo(click.style("✓", fg="green", bold=True) + " Access token issued")
    click.echo(f"Customer:     {credential.principal}")
    click.echo(f"Token:        {credential.token}")
    click.echo(f"Token secret: {secret}")
    remaining = int(credential.ttl_seconds(datetime.now(timezone.utc)))
    click.echo(f"Expires at:   {credential.expires_at.isoformat()} (in {remaining}s)")
