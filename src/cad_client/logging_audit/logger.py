"""Logging setup for the CAD client.

`configure_logging` installs two handlers on the root logger, both using
`SecretRedactingFormatter`:

- a console handler at the requested level
- a rotating file handler that always records DEBUG

Handlers installed here are tagged so a second call replaces them without
touching handlers owned by the host application or the test runner.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from cad_client.logging_audit.formatters import SecretRedactingFormatter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FILE = Path("logs") / "cad-client.log"
LOG_FILE_ENV_VAR = "CAD_CLIENT_LOG_FILE"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Loggers whose DEBUG output would echo request bodies (and so assertions)
NOISY_LOGGERS = ("urllib3",)

_HANDLER_TAG = "_cad_client_handler"

logger = logging.getLogger(__name__)


def _resolve_level(level: str) -> int:
    name = level.upper()
    if name not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")
    return getattr(logging, name)


def _resolve_log_file(log_file: Optional[Path]) -> Path:
    if log_file is not None:
        return Path(log_file)
    from_env = os.environ.get(LOG_FILE_ENV_VAR)
    return Path(from_env) if from_env else DEFAULT_LOG_FILE


def _tagged(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    setattr(handler, _HANDLER_TAG, True)
    return handler


def _remove_installed_handlers(root: logging.Logger) -> None:
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(handler)
        handler.close()


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    redact_secrets: bool = True,
) -> None:
    """Configure console and file logging.

    Args:
        level: Console log level name, case-insensitive. The file handler
            always logs DEBUG.
        log_file: Log file path. Falls back to $CAD_CLIENT_LOG_FILE, then
            logs/cad-client.log.
        redact_secrets: Mask tokens, secrets, assertions and key material

    Raises:
        ValueError: If the level name is unknown
        RuntimeError: If the log directory cannot be created

    Example:
        >>> configure_logging(level="DEBUG", log_file=Path("logs/debug.log"))
    """
    console_level = _resolve_level(level)
    log_path = _resolve_log_file(log_file)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RuntimeError(
            f"Failed to create log directory: {log_path.parent}. "
            f"Ensure write permissions are available. Error: {e}"
        ) from e

    root = logging.getLogger()
    _remove_installed_handlers(root)
    root.setLevel(logging.DEBUG)

    formatter = SecretRedactingFormatter(fmt=LOG_FORMAT, redact_secrets=redact_secrets)
    root.addHandler(_tagged(logging.StreamHandler(), console_level, formatter))

    try:
        file_handler = RotatingFileHandler(
            log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        )
    except OSError as e:
        logger.warning(f"Cannot open log file {log_path} ({e}); logging to console only")
    else:
        root.addHandler(_tagged(file_handler, logging.DEBUG, formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging configured: level={level.upper()}, file={log_path}")


def get_logger(module_name: str) -> logging.Logger:
    """Return the logger for a module, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(module_name)
