"""Logging configuration for mcpship.

Library modules never configure handlers themselves; the CLI (or an
embedding application) calls ``setup_logging`` once at startup.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers kept at WARNING unless verbose
_NOISY_LOGGERS = ("urllib3", "docker")


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging for mcpship.

    Args:
        verbose: Enable DEBUG output, including third-party libraries
        quiet: Only report errors
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the mcpship namespace."""
    return logging.getLogger(name)
