"""
Logging setup for the retail ledger.

Services log through ``logging.getLogger(__name__)``; everything under
the ``retail_ledger`` logger hierarchy is routed through one handler
configured here. Call ``configure_logging`` once at application start.
"""

import logging
import sys

_LOGGER_NAME = "retail_ledger"
_FORMAT = "%(asctime)s level=%(levelname)s logger=%(name)s %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Install a single stream handler on the package logger.

    Calling it again only updates the level, so reloading the app
    in development does not stack duplicate handlers.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level.upper())

    if not any(getattr(h, "_retail_ledger", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._retail_ledger = True
        logger.addHandler(handler)

    return logger
