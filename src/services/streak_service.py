"""Streak calculation over a merged timeline.

A streak is the number of consecutive calendar days, ending today, with at
least one completion of any item. When nothing has been logged today yet the
streak is counted from yesterday, so an unfinished day does not reset it.
"""

from collections.abc import Iterable
from datetime import date

from src.core.day_keys import format_day_key, previous_day
from src.domain.activity import CompletionEvent


def active_day_keys(timeline: Iterable[CompletionEvent]) -> set[str]:
    """Distinct day keys present in a timeline."""
    return {event.day_key for event in timeline if event.day_key}


def compute_streak(timeline: Iterable[CompletionEvent], today: date) -> int:
    """Count consecutive days with activity, walking backward from today.

    Args:
        timeline: Merged completion events
        today: Today's date under the same day key policy as the events

    Returns:
        Streak length in days (0 for an empty timeline)
    """
    days = active_day_keys(timeline)
    if not days:
        return 0

    current = today if format_day_key(today) in days else previous_day(today)
    streak = 0
    while format_day_key(current) in days:
        streak += 1
        current = previous_day(current)
    return streak
