"""Data models for CAD Client.

This module contains the assertion and credential dataclasses used by the
authentication core, and the pydantic models for CAD API resources.
"""

from cad_client.models.credentials import Credential
from cad_client.models.resources import (
    Account,
    InstitutionDetails,
    InstitutionKey,
    Transaction,
    parse_transaction_list,
)
from cad_client.models.saml import SAMLAssertion

__all__ = [
    "Account",
    "Credential",
    "InstitutionDetails",
    "InstitutionKey",
    "SAMLAssertion",
    "Transaction",
    "parse_transaction_list",
]
