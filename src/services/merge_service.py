"""Event merge engine.

Combines server-fetched and locally-cached completion events into one
timeline with at most one entry per item per calendar day. Server events win
over local events with the same key, since the server is authoritative once an
event has synced.

Merging is pure and idempotent: merging a merged timeline again with the same
server events yields the same set of entries.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from src.domain.activity import CompletionEvent, ParentType


logger = logging.getLogger(__name__)

EventKey = tuple[ParentType, str | None, str | None, str]

# Missing or unparseable completion times sort after everything else
_OLDEST = datetime.min.replace(tzinfo=UTC)


def event_key(event: CompletionEvent) -> EventKey:
    """Dedup key ``(parent_type, parent_ref, own_id, day_key)``.

    ``own_id`` is set only for events without a parent ref, so those never collide
    with each other or with any real ref.
    """
    own_id = None if event.parent_ref else event.id
    return (event.parent_type, event.parent_ref or None, own_id, event.day_key)


def _sort_instant(event: CompletionEvent) -> datetime:
    return event.completed_instant or _OLDEST


def sort_timeline(events: Iterable[CompletionEvent]) -> list[CompletionEvent]:
    """Sort newest first; ties keep their input order."""
    return sorted(events, key=_sort_instant, reverse=True)


def merge_events(
    server_events: Iterable[CompletionEvent],
    local_events: Iterable[CompletionEvent],
) -> list[CompletionEvent]:
    """Merge server and local events into one deduplicated timeline.

    Args:
        server_events: Events fetched from the server (inserted first, win ties)
        local_events: Events from the local cache (kept only for unseen keys)

    Returns:
        Timeline ordered by completion time, newest first
    """
    merged: dict[EventKey, CompletionEvent] = {}

    for event in server_events:
        merged.setdefault(event_key(event), event)

    for event in local_events:
        merged.setdefault(event_key(event), event)

    timeline = sort_timeline(merged.values())
    logger.debug("Merged timeline has %d entries", len(timeline))
    return timeline
