"""Custom log formatters for the CAD client.

This module provides a formatter that masks OAuth secrets, tokens, encoded
assertions and PEM key material before records reach a handler.
"""

import logging
import re
from typing import List, Tuple

REDACTED = "[REDACTED]"


class SecretRedactingFormatter(logging.Formatter):
    """Formatter that masks credentials in log messages.

    Covers form/query style values (oauth_token_secret=..., oauth_token=...,
    saml_assertion=..., oauth_signature=...), quoted OAuth header parameters
    (oauth_signature="..."), and PEM private key blocks.

    Attributes:
        redact_secrets: Whether to enable redaction
        patterns: List of (regex_pattern, replacement_text) tuples for redaction

    Example:
        >>> formatter = SecretRedactingFormatter(redact_secrets=True)
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(formatter)
    """

    def __init__(
        self,
        fmt: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt: str | None = None,
        redact_secrets: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.redact_secrets = redact_secrets

        # Secret before token: oauth_token would otherwise match oauth_token_secret's prefix
        self.patterns: List[Tuple[re.Pattern[str], str]] = [
            (
                re.compile(
                    r"-----BEGIN ([A-Z ]*)PRIVATE KEY-----.*?-----END \1PRIVATE KEY-----",
                    re.DOTALL,
                ),
                f"-----BEGIN \\1PRIVATE KEY-----{REDACTED}-----END \\1PRIVATE KEY-----",
            ),
            (re.compile(r'(oauth_token_secret|oauth_signature)="[^"]*"'), rf'\1="{REDACTED}"'),
            (re.compile(r"(oauth_token_secret|oauth_signature|saml_assertion)=[^&\s\"',]+"), rf"\1={REDACTED}"),
            (re.compile(r"(oauth_token)=(?!\[REDACTED\])[^&\s\"',]+"), rf"\1={REDACTED}"),
            (re.compile(r'(oauth_token)="[^"]*"'), rf'\1="{REDACTED}"'),
        ]

    def redact(self, message: str) -> str:
        for pattern, replacement in self.patterns:
            message = pattern.sub(replacement, message)
        return message

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with optional secret redaction."""
        original = super().format(record)
        if self.redact_secrets:
            return self.redact(original)
        return original
