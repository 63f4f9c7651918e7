"""
Storefront logging.

Every module logs through a named logger:

    from storefront.logging import get_logger
    logger = get_logger(__name__)

The cart never raises on storage failures, so warnings emitted here are
the only trace of a lost local write or a failed remote merge. User
identities go through sanitize_id_for_logging() before they reach a
log line.

Environment:
    LOG_LEVEL    root level (default INFO)
    VERCEL=1     compact format without timestamps (the platform adds them)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_COMPACT = "%(levelname)s - %(name)s - %(message)s"

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest", "supabase", "realtime")

ID_LOG_LENGTH = 8


def configure_logging(level: str | None = None) -> None:
    """Attach a stdout handler to the root logger unless one is already present."""
    root = logging.getLogger()
    if root.handlers:
        return

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    compact = os.environ.get("VERCEL") == "1"
    handler.setFormatter(logging.Formatter(LOG_FORMAT_COMPACT if compact else LOG_FORMAT))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Shorten a user identity for log lines.

    Control characters are escaped so a crafted identity cannot forge
    extra log entries; the result is cut to ID_LOG_LENGTH characters.
    Empty or None identities render as "N/A".
    """
    if not id_value:
        return "N/A"
    safe_value = (
        str(id_value)
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )
    return safe_value[:ID_LOG_LENGTH]


__all__ = [
    "configure_logging",
    "get_logger",
    "sanitize_id_for_logging",
]
