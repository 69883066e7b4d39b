"""Logging Audit module.

This module provides logging configuration and secret redaction.
"""

from cad_client.logging_audit.formatters import SecretRedactingFormatter
from cad_client.logging_audit.logger import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "SecretRedactingFormatter",
]
