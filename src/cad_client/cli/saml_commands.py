"""SAML CLI commands for generation and verification.

This module provides CLI commands for SAML assertion testing including:
- saml generate: Create a bearer assertion, signed when a key is given
- saml verify: Validate structure, signature and validity window
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import click
from lxml import etree

from cad_client.models.saml import SAMLAssertion
from cad_client.saml import (
    SAMLAssertionBuilder,
    SAMLSigner,
    SAMLVerifier,
    load_certificate,
    load_private_key,
    load_public_key,
    verify_with_signxml,
)
from cad_client.saml.assertion_builder import SAML_NS, SAML_TIME_FORMAT
from cad_client.utils.exceptions import SAMLError, ValidationError

logger = logging.getLogger(__name__)


def _fail(message: str) -> None:
    click.echo(click.style("✗", fg="red", bold=True) + f" {message}", err=True)
    raise click.exceptions.Exit(1)


def _display_assertion_metadata(assertion: SAMLAssertion) -> None:
    click.echo(f"ID:              {assertion.assertion_id}")
    click.echo(f"Issuer:          {assertion.issuer}")
    click.echo(f"Subject:         {assertion.subject}")
    click.echo(f"Audience:        {assertion.audience}")
    click.echo(f"Issue Instant:   {assertion.issue_instant.strftime(SAML_TIME_FORMAT)}")
    click.echo(f"Not On Or After: {assertion.not_on_or_after.strftime(SAML_TIME_FORMAT)}")
    click.echo(f"Signed:          {'yes' if assertion.is_signed else 'no'}")


@click.group(name="saml")
def saml_group() -> None:
    """SAML bearer assertion generation and verification commands."""
    pass


@saml_group.command(name="generate")
@click.option("--subject", required=True, help="Customer identifier placed in NameID")
@click.option("--issuer", default=None, help="Issuer (default: credentials.saml_provider_id)")
@click.option("--audience", default=None, help="Audience restriction (default: issuer)")
@click.option(
    "--lifetime",
    type=int,
    default=None,
    help="Assertion validity in minutes (default: assertion.lifetime_minutes)",
)
@click.option(
    "--key",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="PEM RSA private key; the assertion is signed when given",
)
@click.option("--output", type=click.Path(path_type=Path), help="Save assertion XML to file")
@click.pass_context
def generate(
    ctx: click.Context,
    subject: str,
    issuer: Optional[str],
    audience: Optional[str],
    lifetime: Optional[int],
    key: Optional[Path],
    output: Optional[Path],
) -> None:
    """Generate a SAML 2.0 bearer assertion.

    Examples:

        # Signed assertion for customer 42
        cad-client saml generate --subject 42 --issuer provider.example.com \\
            --key keys/provider.pem --output assertion.xml
    """
    config = ctx.obj["config"]
    issuer = issuer or config.credentials.saml_provider_id
    if not issuer:
        raise click.UsageError(
            "No issuer given. Pass --issuer or set credentials.saml_provider_id."
        )
    minutes = lifetime if lifetime is not None else config.assertion.lifetime_minutes

    try:
        builder = SAMLAssertionBuilder(
            issuer=issuer,
            lifetime=timedelta(minutes=minutes),
            audience=audience or config.assertion.audience,
        )
        assertion = builder.build(subject)

        if key is not None:
            signer = SAMLSigner(load_private_key(key))
            assertion = signer.sign_assertion(assertion)
            click.echo(click.style("✓", fg="green", bold=True) + " SAML assertion signed")
    except (ValidationError, SAMLError) as e:
        logger.error(f"SAML generation failed: {e}")
        _fail(f"SAML generation failed: {e}")

    click.echo(click.style("\n=== SAML Assertion Metadata ===", bold=True))
    _display_assertion_metadata(assertion)

    if output:
        output.write_text(assertion.xml_content, encoding="utf-8")
        click.echo(click.style("\n✓", fg="green", bold=True) + f" SAML assertion saved to: {output}")
    else:
        click.echo(click.style("\n=== SAML Assertion XML ===", bold=True))
        click.echo(assertion.xml_content)

    logger.info("SAML assertion generation completed successfully")


@saml_group.command(name="verify")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--cert",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Certificate or PEM public key of the signer",
)
@click.option("--signxml", "use_signxml", is_flag=True, help="Also verify with signxml")
def verify(file: Path, cert: Path, use_signxml: bool) -> None:
    """Validate SAML assertion structure, signature and timestamps.

    Examples:

        cad-client saml verify assertion.xml --cert keys/provider.crt
    """
    logger.info(f"Verifying SAML assertion: {file}")
    saml_xml = file.read_bytes()

    try:
        root = etree.fromstring(saml_xml)
    except etree.XMLSyntaxError as e:
        _fail(f"SAML structure invalid: {e}")

    if root.tag != f"{{{SAML_NS}}}Assertion":
        _fail(f"SAML 2.0 structure invalid: expected Assertion root, found {root.tag}")
    click.echo(click.style("✓", fg="green", bold=True) + " SAML 2.0 structure valid")

    try:
        SAMLVerifier(load_public_key(cert)).verify_xml(saml_xml)
        click.echo(click.style("✓", fg="green", bold=True) + " Signature valid")
        if use_signxml:
            verify_with_signxml(saml_xml, load_certificate(cert))
            click.echo(click.style("✓", fg="green", bold=True) + " Signature valid (signxml)")
    except SAMLError as e:
        logger.error(f"Signature verification failed for {file}: {e}")
        _fail(f"Signature invalid: {e}")

    conditions = root.find(f"{{{SAML_NS}}}Conditions")
    if conditions is None:
        _fail("Assertion has no Conditions element")

    try:
        not_before = datetime.strptime(conditions.get("NotBefore", ""), SAML_TIME_FORMAT)
        not_on_or_after = datetime.strptime(conditions.get("NotOnOrAfter", ""), SAML_TIME_FORMAT)
    except ValueError as e:
        _fail(f"Timestamps invalid: {e}")

    now = datetime.now(timezone.utc)
    if now < not_before.replace(tzinfo=timezone.utc):
        _fail("Timestamps invalid: Assertion not yet valid")
    if now >= not_on_or_after.replace(tzinfo=timezone.utc):
        _fail("Timestamps invalid: Assertion expired")
    click.echo(click.style("✓", fg="green", bold=True) + " Timestamps valid")

    logger.info("SAML assertion verification completed successfully")
