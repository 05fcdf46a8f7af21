"""
Logging setup shared by the CLI and the HTTP server.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the ``medibot`` logger hierarchy to write to stderr.

    Args:
        level: Logging level name

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("medibot")

    # Clear any existing handlers so repeated calls don't duplicate output
    logger.handlers.clear()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    # httpx logs full request URLs, which carry the Gemini API key
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
