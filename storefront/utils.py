"""Shared utility functions for the storefront."""

import logging
from datetime import datetime, UTC
from decimal import Decimal, ROUND_HALF_UP
from uuid import uuid4

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a string UUID primary key."""
    return str(uuid4())


def to_cents(amount: float | Decimal) -> int:
    """Convert a currency amount to integer cents, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int | None) -> float:
    return round((cents or 0) / 100, 2)


def parse_timestamp(timestamp_str: str | None) -> datetime | None:
    """
    Parse an ISO timestamp string to datetime.

    Args:
        timestamp_str: ISO format timestamp string.

    Returns:
        Parsed datetime or None if parsing fails.
    """
    if not timestamp_str:
        return None

    try:
        return datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
    except ValueError as e:
        logger.debug(f"Failed to parse timestamp '{timestamp_str}': {e}")
        return None


def from_unix(ts: int | None) -> datetime | None:
    return datetime.fromtimestamp(ts, tz=UTC) if ts else None


def split_ids(value: str | None) -> list[str]:
    """Split a comma-separated metadata value into a list of ids."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level name, e.g. "INFO" or "DEBUG".
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
