"""Centralized logging utilities with configurable display time zone."""
from __future__ import annotations

import sys
from zoneinfo import ZoneInfo

from loguru import logger

# Default display zone for log timestamps
DEFAULT_TZ = ZoneInfo("UTC")


def configure_logging(
    log_file: str | None = None,
    level: str = "INFO",
    serialize: bool = False,
    timezone: str | None = None,
) -> None:
    """Configure logging with timestamps rendered in the given zone.

    Args:
        log_file: Optional file path for log output
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        serialize: Whether to serialize logs as JSON
        timezone: IANA zone name for displayed timestamps (default UTC)
    """
    logger.remove()
    display_tz = ZoneInfo(timezone) if timezone else DEFAULT_TZ

    def local_format(record):
        """Format record with display-zone time."""
        local_time = record["time"].astimezone(display_tz)
        record["extra"]["local_time"] = local_time.strftime("%Y-%m-%d %H:%M:%S")
        record["extra"]["tz_name"] = local_time.tzname() or ""
        return record

    log_format = (
        "<green>{extra[local_time]}</green> {extra[tz_name]} | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>\n"
    )

    logger.add(
        sys.stderr,
        format=log_format,
        level=level,
        serialize=serialize,
        filter=lambda record: local_format(record) or True,
    )

    if log_file:
        logger.add(
            log_file,
            format=log_format,
            level=level,
            rotation="10 MB",
            retention="10 days",
            serialize=serialize,
            filter=lambda record: local_format(record) or True,
        )


__all__ = ["configure_logging", "logger", "DEFAULT_TZ"]
