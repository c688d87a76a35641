"""
EcoFlow - Logging Configuration
Log setup for the API process. Modules log through logging.getLogger(__name__).
"""

import logging
import sys
from typing import Optional

from src.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "PIL", "limits")

_configured = False


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``src`` logger tree once per process.

    Args:
        level: Log level name; defaults to settings.log_level

    Returns:
        The package root logger
    """
    global _configured

    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    root = logging.getLogger("src")
    root.setLevel(log_level)

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        _configured = True
        root.debug(f"Logging configured at {logging.getLevelName(log_level)}")

    return root
