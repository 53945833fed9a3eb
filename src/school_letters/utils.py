"""Utility functions shared by the pipeline stages."""

import logging
import re
import sys
from typing import Optional

from .config.settings import settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(
    level: int | None = None,
    format_string: Optional[str] = None,
) -> None:
    """Set up global logging configuration.

    Args:
        level: Logging level override (default: from settings.log_level)
        format_string: Custom format string (optional)
    """
    if level is None:
        level = LOG_LEVEL_MAP.get(settings.log_level.upper(), logging.INFO)

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_string,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


# ---------------------------------------------------------------------------
# File naming
# ---------------------------------------------------------------------------

_UNSAFE_GROUP_CHARS = re.compile(r"[^A-Za-z0-9_]")


def safe_id(school_id: str) -> str:
    """Make a school id usable as a file name ("/" becomes "-slash-")."""
    return str(school_id).replace("/", "-slash-")


def safe_group_name(group: str) -> str:
    """Replace every character outside [A-Za-z0-9_] with an underscore."""
    return _UNSAFE_GROUP_CHARS.sub("_", str(group))
