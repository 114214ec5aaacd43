"""
Logging setup. Modules log through logging.getLogger(__name__) and prefix
messages with their component tag, e.g. "[SCRAPER] ...".
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO") -> None:
    """Install one stdout handler on the root logger. Safe to call twice."""
    global _handler

    root = logging.getLogger()
    root.setLevel(level)

    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)
    _handler.setLevel(level)
