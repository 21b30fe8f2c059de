"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from src.core.day_keys import DayKeyPolicy
from src.domain.activity import CompletionEvent, EventOrigin, ParentType


# Fixed "now" used across tests: 2024-01-10 12:00 UTC
FIXED_NOW = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def policy() -> DayKeyPolicy:
    """UTC day key policy."""
    return DayKeyPolicy()


@pytest.fixture
def make_event() -> Callable[..., CompletionEvent]:
    """Factory for completion events.

    ``day`` is a YYYY-MM-DD day key; the completion time defaults to noon UTC on that day.
    """
    counter = {"n": 0}

    def _make(
        day: str,
        *,
        ref: str | None = "r1",
        parent_type: ParentType = ParentType.ROUTINE,
        origin: EventOrigin = EventOrigin.SERVER,
        title: str = "Stretch",
        time: str = "12:00:00",
        event_id: str | None = None,
        completed_at: str | None = "",
    ) -> CompletionEvent:
        counter["n"] += 1
        if completed_at == "":
            completed_at = f"{day}T{time}Z"
        prefix = "a_" if origin == EventOrigin.LOCAL else "s"
        return CompletionEvent(
            id=event_id or f"{prefix}{counter['n']}",
            parent_type=parent_type,
            parent_ref=ref,
            title=title,
            completed_at=completed_at,
            day_key=day,
            origin=origin,
        )

    return _make
