"""Calendar day keys derived from completion timestamps.

A day key is a ``YYYY-MM-DD`` string. Timestamps are converted with a fixed UTC
offset (UTC by default), so events near midnight land on the day of that
offset rather than the user's wall clock. Merge, streak, and consistency code
only ever compare day keys, so correcting the policy does not touch them.
"""

import logging
from datetime import UTC, date, datetime, timedelta, timezone

from dateutil import parser as dateutil_parser

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Naive values are treated as UTC. Returns None for missing or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif not isinstance(value, str):
        logger.debug("Ignoring non-string timestamp: %r", value)
        return None
    else:
        text = value.strip()
        if not text:
            return None
        try:
            parsed = dateutil_parser.isoparse(text)
        except (ValueError, OverflowError):
            logger.debug("Unparseable timestamp: %r", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_day_key(day: date) -> str:
    """Format a calendar date as a day key."""
    return day.strftime(constants.DAY_KEY_FORMAT)


def parse_day_key(day_key: str) -> date | None:
    """Parse a day key back into a date, or None if it is not one."""
    try:
        return datetime.strptime(day_key, constants.DAY_KEY_FORMAT).date()
    except (TypeError, ValueError):
        return None


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


class DayKeyPolicy:
    """Derives day keys from instants using a fixed UTC offset."""

    def __init__(self, utc_offset_minutes: int = 0) -> None:
        self.utc_offset_minutes = utc_offset_minutes
        self._tz = UTC if utc_offset_minutes == 0 else timezone(timedelta(minutes=utc_offset_minutes))

    def __repr__(self) -> str:
        return f"DayKeyPolicy(utc_offset_minutes={self.utc_offset_minutes})"

    def day_of(self, value: str | datetime | None) -> date | None:
        """Calendar date of a timestamp under this policy."""
        instant = parse_timestamp(value)
        if instant is None:
            return None
        return instant.astimezone(self._tz).date()

    def day_key(self, value: str | datetime | None) -> str | None:
        """Day key of a timestamp, or None when the timestamp is unusable."""
        day = self.day_of(value)
        return format_day_key(day) if day else None

    def today(self, now: datetime | None = None) -> date:
        """Today's calendar date under this policy."""
        current = now or datetime.now(UTC)
        if current.tzinfo is None:
            current = current.replace(tzinfo=UTC)
        return current.astimezone(self._tz).date()


def get_default_policy() -> DayKeyPolicy:
    """Day key policy configured for this process."""
    return DayKeyPolicy(settings.day_key_utc_offset_minutes)
