"""Reconciliation controller.

Applies user actions to the local cache immediately, performs the matching
remote mutations, and re-merges the timeline once remote work settles.

Bulk clear runs as a small state machine:

    IDLE -> OPTIMISTIC_APPLIED -> REMOTE_SYNCING -> SETTLED -> IDLE

The local cache write always finishes before any remote call is issued. Remote
deletions are attempted one by one; failures are tallied, never retried, and
never roll back what already succeeded. Every re-merge reads the cache as it is
when the merge runs.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from enum import StrEnum

from src.core.api_client import ProductivityAPIClient
from src.core.cache_client import CacheKey, LocalEventCache
from src.core.day_keys import DayKeyPolicy, format_day_key, get_default_policy
from src.core.errors import ErrorCategory, classify_error
from src.core.logging import log_with_context, span
from src.domain.activity import CompletionEvent, EventOrigin, ParentType, new_local_event_id
from src.domain.item import Goal, Routine
from src.models.service_models import BatchResult, ProgressSnapshot
from src.services.consistency_service import (
    aggregate,
    events_for_day,
    goal_completion_events,
    group_by_day,
    summarize,
)
from src.services.merge_service import event_key, merge_events
from src.services.notification_service import Notifier
from src.services.streak_service import compute_streak


logger = logging.getLogger(__name__)


class ReconciliationState(StrEnum):
    """Bulk operation state."""

    IDLE = "IDLE"
    OPTIMISTIC_APPLIED = "OPTIMISTIC_APPLIED"
    REMOTE_SYNCING = "REMOTE_SYNCING"
    SETTLED = "SETTLED"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _format_instant(instant: datetime) -> str:
    return instant.astimezone(UTC).isoformat().replace("+00:00", "Z")


class ReconciliationController:
    """Owns the presented timeline and every mutation of completion state."""

    def __init__(
        self,
        *,
        api: ProductivityAPIClient,
        cache: LocalEventCache,
        notifier: Notifier,
        policy: DayKeyPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._api = api
        self._cache = cache
        self._notifier = notifier
        self._policy = policy or get_default_policy()
        self._clock = clock or _utc_now

        self._state = ReconciliationState.IDLE
        self._server_events: list[CompletionEvent] = []
        self._goals: list[Goal] = []
        self._background_tasks: set[asyncio.Task[BatchResult]] = set()

        self.snapshot: ProgressSnapshot | None = None
        self.last_batch: BatchResult | None = None

    @property
    def state(self) -> ReconciliationState:
        return self._state

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def today(self) -> date:
        return self._policy.today(self._clock())

    # Merging

    def _rebuild(self) -> ProgressSnapshot:
        """Re-merge last known server state with the current local cache."""
        local_events = self._cache.read_events()
        server_events = [*self._server_events, *goal_completion_events(self._goals, self._policy)]
        timeline = merge_events(server_events, local_events)

        today = self.today()
        today_key = format_day_key(today)
        routine_events = [event for event in timeline if event.parent_type == ParentType.ROUTINE]

        self.snapshot = ProgressSnapshot(
            timeline=timeline,
            streak=compute_streak(timeline, today),
            consistency=aggregate(self._goals, routine_events, policy=self._policy),
            days=group_by_day(timeline),
            summary=summarize(timeline),
            today=today_key,
            today_events=events_for_day(timeline, today_key),
        )
        return self.snapshot

    async def _fetch_activities(self) -> list[CompletionEvent]:
        try:
            return await self._api.fetch_activities()
        except Exception as e:
            logger.warning("Failed to fetch activities from server, using local only: %s", e)
            return []

    async def _fetch_goals(self) -> list[Goal]:
        try:
            return await self._api.fetch_goals()
        except Exception as e:
            logger.warning("Failed to fetch goals from server: %s", e)
            return []

    async def refresh(self) -> ProgressSnapshot:
        """Fetch server state and merge it with the local cache.

        Remote failures degrade to empty lists; this never raises for network errors.
        """
        with span("reconciliation_service.refresh"):
            server_events, goals = await asyncio.gather(self._fetch_activities(), self._fetch_goals())
            self._server_events = server_events
            self._goals = goals
            snapshot = self._rebuild()
            log_with_context(
                logger,
                "debug",
                "Timeline refreshed",
                server_events=len(server_events),
                goals=len(goals),
                entries=len(snapshot.timeline),
            )
            return snapshot

    async def load_routines(self) -> list[Routine]:
        """Fetch routines, caching them; falls back to the cached list when offline."""
        try:
            routines = await self._api.fetch_routines()
        except Exception as e:
            logger.warning("Failed to fetch routines, using cached list: %s", e)
            return self._cache.read(CacheKey.ROUTINES)

        try:
            self._cache.write(CacheKey.ROUTINES, routines)
        except OSError as e:
            logger.warning("Failed to cache routines locally: %s", e)
        return routines

    # Bulk clear

    async def clear_history(self) -> ProgressSnapshot | None:
        """Clear all completion history.

        The local cache is emptied synchronously and the snapshot updated before
        any remote call. Server cleanup then runs in a background task; use
        ``wait_settled`` to await it.

        Returns:
            The optimistic snapshot, or None if the local write failed and nothing changed
        """
        with span("reconciliation_service.clear_history"):
            try:
                self._cache.clear(CacheKey.ACTIVITIES)
            except Exception as e:
                response = classify_error(e)
                logger.error("Clear history failed before any change: %s", e)
                self._notifier.error("Failed to clear history", response=response)
                return None

            # Server events reappear on settlement only if their deletion failed
            self._server_events = []
            self._state = ReconciliationState.OPTIMISTIC_APPLIED
            snapshot = self._rebuild()
            self._notifier.success("Cleared local history immediately. Server cleanup running in background.")

            task = asyncio.create_task(self._clear_remote_history())
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
            return snapshot

    async def _delete_remote_events(self, events: list[CompletionEvent]) -> BatchResult:
        result = BatchResult()
        for event in events:
            try:
                await self._api.delete_activity(event.id)
                result.removed += 1
            except Exception as e:
                result.failed += 1
                logger.warning("Failed to delete server activity %s: %s", event.id, e)
        return result

    async def _clear_remote_history(self) -> BatchResult:
        self._state = ReconciliationState.REMOTE_SYNCING
        try:
            with span("reconciliation_service.clear_remote_history"):
                try:
                    remote_events = await self._api.fetch_activities()
                except Exception as e:
                    logger.warning("Could not fetch server activities for cleanup: %s", e)
                    remote_events = []

                result = await self._delete_remote_events(remote_events)
                self.last_batch = result
                if not self._other_cleanups_pending():
                    self._state = ReconciliationState.SETTLED

                try:
                    await self.refresh()
                except Exception as e:
                    logger.warning("Background refresh after cleanup failed: %s", e)

                summary = f"Server removed: {result.removed}. Failed: {result.failed}."
                if result.failed:
                    log_with_context(
                        logger,
                        "warning",
                        "Partial cleanup failure",
                        category=ErrorCategory.PARTIAL_BATCH.value,
                        removed=result.removed,
                        failed=result.failed,
                    )
                    self._notifier.error(summary)
                else:
                    self._notifier.success(summary)
                return result
        finally:
            # A later clear may still be syncing
            if not self._other_cleanups_pending():
                self._state = ReconciliationState.IDLE

    def _other_cleanups_pending(self) -> bool:
        current = asyncio.current_task()
        return any(not task.done() for task in self._background_tasks if task is not current)

    async def wait_settled(self) -> list[BatchResult]:
        """Wait for every background cleanup started so far."""
        tasks = list(self._background_tasks)
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    # Single-item actions

    async def mark_done(self, *, parent_type: ParentType, item_id: str, title: str = "") -> CompletionEvent | None:
        """Record a completion for a routine or complete a goal.

        Routine completions that cannot reach the server are kept in the local
        cache. Authorization failures record nothing.

        Returns:
            The recorded event, or None if nothing was recorded
        """
        with span("reconciliation_service.mark_done"):
            if parent_type == ParentType.GOAL:
                return await self._complete_goal(item_id)

            now = self._clock()
            draft = CompletionEvent(
                id=new_local_event_id(),
                parent_type=ParentType.ROUTINE,
                parent_ref=item_id,
                title=title,
                completed_at=_format_instant(now),
                day_key=self._policy.day_key(now) or format_day_key(self.today()),
                origin=EventOrigin.LOCAL,
            )
            try:
                created = await self._api.create_activity(draft)
            except Exception as e:
                response = classify_error(e)
                if response.category == ErrorCategory.AUTHORIZATION:
                    self._notifier.error("Failed to record activity", response=response)
                    return None
                logger.warning("Server unavailable, keeping completion of %s locally: %s", item_id, e)
                try:
                    self._cache.add_event(draft)
                except Exception as cache_error:
                    self._notifier.error("Failed to record activity", response=classify_error(cache_error))
                    return None
                self._rebuild()
                self._notifier.info(f'Marked "{title}" done (saved on this device)')
                return draft

            self._server_events = [created, *self._server_events]
            self._rebuild()
            self._notifier.success(f'Marked "{title}" done')
            return created

    async def _complete_goal(self, goal_id: str) -> CompletionEvent | None:
        try:
            goal = await self._api.complete_goal(goal_id)
        except Exception as e:
            self._notifier.error("Failed to complete goal", response=classify_error(e))
            return None

        self._goals = [g for g in self._goals if g.id != goal.id] + [goal]
        self._rebuild()
        self._notifier.success(f'Completed goal "{goal.title}"')
        events = goal_completion_events([goal], self._policy)
        return events[0] if events else None

    async def undo_today(self, routine_id: str, *, today: date | None = None) -> bool:
        """Remove today's completion of a routine.

        Every server event and cached copy sharing the entry's key is removed,
        so no duplicate resurfaces on the next merge.

        Returns:
            True if the entry is gone; on failure it stays in the timeline
        """
        day_key = format_day_key(today or self.today())
        timeline = self.snapshot.timeline if self.snapshot else []
        target = next(
            (
                event
                for event in timeline
                if event.parent_type == ParentType.ROUTINE
                and event.parent_ref == routine_id
                and event.day_key == day_key
            ),
            None,
        )
        if target is None:
            logger.info("No completion of routine %s on %s to undo", routine_id, day_key)
            return False

        target_key = event_key(target)
        deleted_ids: set[str] = set()
        failures: list[Exception] = []
        for event in self._server_events:
            if event_key(event) != target_key:
                continue
            try:
                await self._api.delete_activity(event.id)
            except Exception as e:
                failures.append(e)
                logger.warning("Failed to delete server activity %s: %s", event.id, e)
                continue
            deleted_ids.add(event.id)

        self._server_events = [event for event in self._server_events if event.id not in deleted_ids]
        try:
            # Same-day local copies would resurface on the next merge
            self._cache.remove_events(lambda event: event_key(event) == target_key)
        except Exception as e:
            failures.append(e)
            logger.warning("Failed to drop cached copies of %s: %s", target.id, e)

        self._rebuild()
        if failures:
            self._notifier.error("Failed to undo activity", response=classify_error(failures[0]))
            return False
        self._notifier.success("Undone for today")
        return True

    async def clear_item_history(self, *, parent_type: ParentType, item_id: str) -> ProgressSnapshot:
        """Remove the completion history of one item, keeping the item.

        Routines lose their cached and server events; goals have their completed
        flag reset. Always re-merges, whatever the outcome.
        """
        with span("reconciliation_service.clear_item_history"):
            try:
                if parent_type == ParentType.GOAL:
                    await self._api.update_goal(item_id, completed=False, completed_at=None)
                    self._notifier.success("Goal history cleared")
                else:
                    result = await self._remove_routine_events(item_id)
                    self._notifier.success(
                        f"History cleared. Server removed: {result.removed}. Failed: {result.failed}."
                    )
            except Exception as e:
                self._notifier.error("Failed to clear history", response=classify_error(e))
            return await self.refresh()

    async def delete_item(self, *, parent_type: ParentType, item_id: str) -> ProgressSnapshot:
        """Delete a goal or routine together with its completion events.

        Always re-merges, whatever the outcome.
        """
        with span("reconciliation_service.delete_item"):
            try:
                if parent_type == ParentType.GOAL:
                    await self._api.delete_goal(item_id)
                    self._notifier.success("Goal removed successfully")
                else:
                    await self._api.delete_routine(item_id)
                    await self._remove_routine_events(item_id)
                    self._cache.update(
                        CacheKey.ROUTINES,
                        lambda routines: [routine for routine in routines if routine.id != item_id],
                    )
                    self._notifier.success("Routine removed successfully")
            except Exception as e:
                label = "goal" if parent_type == ParentType.GOAL else "routine"
                self._notifier.error(f"Failed to delete {label}", response=classify_error(e))
            return await self.refresh()

    async def _remove_routine_events(self, routine_id: str) -> BatchResult:
        def _belongs(event: CompletionEvent) -> bool:
            return event.parent_type == ParentType.ROUTINE and event.parent_ref == routine_id

        self._cache.remove_events(_belongs)
        remote_events = [event for event in await self._fetch_activities() if _belongs(event)]
        return await self._delete_remote_events(remote_events)

    # Local event sync

    async def sync_local_events(self) -> BatchResult:
        """Push locally kept completions to the server.

        Cached events whose key the server already has are dropped as redundant;
        the rest are created remotely and removed from the cache on success.

        Returns:
            removed = events pushed or found redundant, failed = events still only local
        """
        with span("reconciliation_service.sync_local_events"):
            result = BatchResult()
            local_events = self._cache.read_events()
            if not local_events:
                return result

            try:
                server_events = await self._api.fetch_activities()
            except Exception as e:
                logger.warning("Cannot sync local events, server unavailable: %s", e)
                result.failed = len(local_events)
                return result

            known_keys = {event_key(event) for event in server_events}
            synced_ids: set[str] = set()
            for event in local_events:
                if event_key(event) in known_keys:
                    synced_ids.add(event.id)
                    result.removed += 1
                    continue
                try:
                    created = await self._api.create_activity(event)
                except Exception as e:
                    result.failed += 1
                    logger.warning("Failed to sync local activity %s: %s", event.id, e)
                    continue
                server_events.append(created)
                known_keys.add(event_key(created))
                synced_ids.add(event.id)
                result.removed += 1

            self._cache.remove_events(lambda event: event.id in synced_ids)
            self._server_events = server_events
            self._rebuild()
            log_with_context(logger, "info", "Local events synced", synced=result.removed, failed=result.failed)
            return result
