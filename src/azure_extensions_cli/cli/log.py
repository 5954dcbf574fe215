"""Process-level logging for the azure-extensions-cli."""

from __future__ import annotations

import logging
from typing import TextIO

LOGGER_NAME = "azure_extensions_cli"
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def configure_logging(stream: TextIO, *, verbose: bool = False) -> logging.Logger:
    """Send CLI log records to ``stream``; repeated calls replace the handler."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_azext_cli_handler", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream=stream)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler._azext_cli_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    # urllib3 connection chatter is only useful when debugging.
    logging.getLogger("urllib3").setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger
