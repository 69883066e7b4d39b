"""CLI commands for CAD API resources."""

import json
import logging
from datetime import datetime
from typing import Optional

import click
import requests

from cad_client.api import CADClient
from cad_client.cli.token_commands import report_failure
from cad_client.config import build_cache, build_session, get_request_timeout
from cad_client.utils.exceptions import CADClientError

logger = logging.getLogger(__name__)


def _client(config, customer_id: str) -> CADClient:
    session = build_session(config)
    cache = build_cache(config, session=session)
    return CADClient(
        customer_id,
        cache,
        consumer_key=config.credentials.consumer_key,
        consumer_secret=config.credentials.consumer_secret,
        base_url=config.endpoints.api_base_url,
        session=session,
        timeout=get_request_timeout(config),
    )


@click.group(name="accounts")
def accounts_group() -> None:
    """Customer account commands."""
    pass


@accounts_group.command(name="list")
@click.option("--customer-id", required=True, help="Customer identifier")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def list_accounts(ctx: click.Context, customer_id: str, as_json: bool) -> None:
    """List all accounts of a customer."""
    config = ctx.obj["config"]

    try:
        client = _client(config, customer_id)
        with client.cache:
            accounts = client.get_customer_accounts()
    except (CADClientError, requests.RequestException) as e:
        logger.error(f"Listing accounts failed for customer={customer_id}: {e}")
        report_failure(e, customer_id)

    if as_json:
        click.echo(json.dumps([a.model_dump(mode="json") for a in accounts], indent=2))
        return

    if not accounts:
        click.echo("No accounts found")
        return

    click.echo(f"{'ID':<14} {'Name':<24} {'Balance':>14} {'Currency':<8} Status")
    for account in accounts:
        click.echo(
            f"{account.id:<14} {account.name[:24]:<24} {account.balance:>14.2f} "
            f"{account.currency:<8} {account.status}"
        )


@accounts_group.command(name="transactions")
@click.option("--customer-id", required=True, help="Customer identifier")
@click.option("--account-id", type=int, required=True, help="Account identifier")
@click.option("--start", "start_date", type=click.DateTime(formats=["%Y-%m-%d"]), required=True)
@click.option("--end", "end_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.pass_context
def list_transactions(
    ctx: click.Context,
    customer_id: str,
    account_id: int,
    start_date: datetime,
    end_date: Optional[datetime],
) -> None:
    """List transactions of one account between two dates."""
    config = ctx.obj["config"]

    try:
        client = _client(config, customer_id)
        with client.cache:
            transactions = client.get_account_transactions(
                account_id,
                start_date.date(),
                end_date.date() if end_date else None,
            )
    except (CADClientError, requests.RequestException) as e:
        logger.error(f"Listing transactions failed for account={account_id}: {e}")
        report_failure(e, customer_id)

    for kind, items in transactions.items():
        click.echo(click.style(f"\n=== {kind} ({len(items)}) ===", bold=True))
        for txn in items:
            posted = txn.posted_date.strftime("%Y-%m-%d") if txn.posted_date else "-"
            pending = " (pending)" if txn.pending else ""
            click.echo(f"{posted}  {txn.amount:>12.2f} {txn.currency_type:<4} {txn.payee_name}{pending}")
