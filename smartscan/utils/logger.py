"""Logging setup for the SmartScan document core.

Log records go to stderr so that command output written to stdout stays
machine-readable.
"""

import logging
import sys
from typing import TextIO

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# urllib3 logs full request URLs at DEBUG, and the Gemini key travels as a
# query parameter.
_QUIET_LOGGERS = ("urllib3",)


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure the root logger once; later calls only change the level.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        stream: Destination stream, stderr by default.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    if root.handlers:
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
