"""
Logging helpers.

Usage:
    from authorization_attrs.utils import get_logger

    log = get_logger(__name__)
"""
import logging

from authorization_attrs.core import config


PACKAGE_LOGGER = "authorization_attrs"

_configured = False


def _configure_package_logger() -> None:
    global _configured

    package_log = logging.getLogger(PACKAGE_LOGGER)
    package_log.setLevel(config.LOG_LEVEL)
    # Host applications decide where records go
    package_log.addHandler(logging.NullHandler())
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the package logger, configuring it on first use."""
    if not _configured:
        _configure_package_logger()
    return logging.getLogger(name)
