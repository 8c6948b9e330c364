import logging
import sys
from typing import Optional, TextIO

"""
logger.py - one place to configure logging for the whole process.

Modules just do `logging.getLogger(__name__)`; the entry point calls
setup_logging() once. Library code never configures handlers itself.
"""

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    root = logging.getLogger("lineblog")
    root.setLevel(level.upper())
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(handler)
    return root
