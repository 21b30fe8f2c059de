"""Consistency aggregation.

Groups completion events by their goal/routine and counts distinct calendar
days per item. Completing the same routine several times on one day counts as
one day.
"""

import logging
from collections.abc import Iterable
from enum import StrEnum

from src.core.config import constants
from src.core.day_keys import DayKeyPolicy, get_default_policy
from src.core.logging import span
from src.domain.activity import CompletionEvent, EventOrigin, ParentType
from src.domain.item import Goal
from src.models.service_models import ActivitySummary, ConsistencyRecord, DayGroup


logger = logging.getLogger(__name__)


class ConsistencyFilter(StrEnum):
    """View filter applied after aggregation."""

    ALL = "all"
    GOAL = "goal"
    ROUTINE = "routine"


def goal_completion_events(goals: Iterable[Goal], policy: DayKeyPolicy | None = None) -> list[CompletionEvent]:
    """Synthesize one server-origin completion event per completed goal.

    The event time is the goal's ``completed_at``, falling back to ``created_at``.
    Goals with neither usable timestamp are skipped.
    """
    policy = policy or get_default_policy()
    events = []
    for goal in goals:
        if not goal.completed:
            continue
        completed_at = goal.completed_at or goal.created_at
        day_key = policy.day_key(completed_at)
        if day_key is None:
            logger.warning("Completed goal %s has no usable timestamp, skipping", goal.id)
            continue
        events.append(
            CompletionEvent(
                id=f"{constants.GOAL_EVENT_ID_PREFIX}{goal.id}",
                parent_type=ParentType.GOAL,
                parent_ref=goal.id,
                title=goal.title,
                completed_at=completed_at,
                day_key=day_key,
                origin=EventOrigin.SERVER,
            )
        )
    return events


def _record_sort_key(record: ConsistencyRecord) -> tuple[int, str]:
    return (-record.days_count, record.title)


def aggregate(
    goals: Iterable[Goal],
    routine_events: Iterable[CompletionEvent],
    *,
    view: ConsistencyFilter = ConsistencyFilter.ALL,
    policy: DayKeyPolicy | None = None,
) -> list[ConsistencyRecord]:
    """Build one consistency record per item.

    Args:
        goals: Goals from the server; each completed goal counts as one implicit completion
        routine_events: Raw routine completion events (duplicates per day are fine)
        view: Filter applied to the finished records
        policy: Day key policy for goal timestamps

    Returns:
        Records sorted by distinct day count (descending), then title
    """
    with span("consistency_service.aggregate"):
        # Keyed by (kind, parent ref, event id); the id only stands in when the ref is missing
        groups: dict[tuple[ParentType, str | None, str | None], set[str]] = {}
        titles: dict[tuple[ParentType, str | None, str | None], str] = {}

        for event in goal_completion_events(goals, policy):
            key = (ParentType.GOAL, event.parent_ref or None, None if event.parent_ref else event.id)
            groups.setdefault(key, set()).add(event.day_key)
            titles[key] = event.title

        for event in routine_events:
            if event.parent_type != ParentType.ROUTINE:
                continue
            key = (ParentType.ROUTINE, event.parent_ref or None, None if event.parent_ref else event.id)
            groups.setdefault(key, set()).add(event.day_key)
            titles.setdefault(key, event.title)

        records = [
            ConsistencyRecord(
                parent_type=key[0],
                parent_ref=key[1],
                title=titles[key],
                days_count=len(days),
                recent_days=sorted(days, reverse=True),
            )
            for key, days in groups.items()
        ]
        records.sort(key=_record_sort_key)
        return filter_records(records, view)


def filter_records(records: Iterable[ConsistencyRecord], view: ConsistencyFilter) -> list[ConsistencyRecord]:
    if view == ConsistencyFilter.ALL:
        return list(records)
    return [record for record in records if record.parent_type.value == view.value]


def group_by_day(timeline: Iterable[CompletionEvent]) -> list[DayGroup]:
    """Group timeline entries by day key, most recent day first.

    Entries inside a day keep their timeline order.
    """
    groups: dict[str, list[CompletionEvent]] = {}
    for event in timeline:
        groups.setdefault(event.day_key, []).append(event)
    return [DayGroup(date=day, items=groups[day]) for day in sorted(groups, reverse=True)]


def events_for_day(timeline: Iterable[CompletionEvent], day_key: str) -> list[CompletionEvent]:
    return [event for event in timeline if event.day_key == day_key]


def summarize(timeline: Iterable[CompletionEvent]) -> ActivitySummary:
    """Count timeline entries in total and per item kind."""
    events = list(timeline)
    goals = sum(1 for event in events if event.parent_type == ParentType.GOAL)
    routines = sum(1 for event in events if event.parent_type == ParentType.ROUTINE)
    return ActivitySummary(total=len(events), goals=goals, routines=routines)
