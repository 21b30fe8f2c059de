"""Local event cache: durable client-side store for routines and completion events.

Entries are kept as JSON strings under fixed storage keys, the same layout the
web client keeps in browser storage. The store lives in process memory, or in a
JSON file when ``settings.local_cache_path`` is set.
"""

import json
import logging
import threading
import time
from collections.abc import Callable, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from src.core.config import constants, settings
from src.core.day_keys import DayKeyPolicy, get_default_policy
from src.core.errors import CacheCorruptedError
from src.domain.activity import CompletionEvent, EventOrigin
from src.domain.item import Routine


logger = logging.getLogger(__name__)


class CacheKey(StrEnum):
    """Logical cache names."""

    ROUTINES = constants.CACHE_KEY_ROUTINES
    ACTIVITIES = constants.CACHE_KEY_ACTIVITIES


class LocalEventCache:
    """Thread-safe local cache with read-modify-write updates.

    Every mutation reads the full current contents under the lock before
    writing, so writers never clobber each other with stale lists.
    """

    def __init__(self, path: Path | None = None, *, policy: DayKeyPolicy | None = None) -> None:
        """Initialize the cache.

        Args:
            path: JSON file backing the cache; None keeps everything in memory
            policy: Day key policy for records cached without a day key
        """
        self._path = path
        self._policy = policy or get_default_policy()
        self._memory: dict[str, str] = {}
        self._lock = threading.Lock()

        # Health tracking
        self._last_successful_operation: float | None = None
        self._total_operations = 0

    @property
    def path(self) -> Path | None:
        return self._path

    def get_health_status(self) -> dict[str, Any]:
        """Get cache health status."""
        return {
            "backend": "file" if self._path else "memory",
            "last_successful_operation": self._last_successful_operation,
            "total_operations": self._total_operations,
        }

    def _record_success(self) -> None:
        self._last_successful_operation = time.time()
        self._total_operations += 1

    # Raw storage

    def _load_store(self) -> dict[str, str]:
        if self._path is None:
            return self._memory
        if not self._path.exists():
            return {}
        try:
            store = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Local cache file %s is unreadable, treating as empty: %s", self._path, e)
            return {}
        if not isinstance(store, dict):
            logger.warning("Local cache file %s has unexpected layout, treating as empty", self._path)
            return {}
        return store

    def _get_raw(self, key: CacheKey) -> str | None:
        value = self._load_store().get(key.value)
        return value if isinstance(value, str) else None

    def _set_raw(self, key: CacheKey, raw: str) -> None:
        if self._path is None:
            self._memory[key.value] = raw
            return
        store = self._load_store()
        store[key.value] = raw
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(store), encoding="utf-8")
        tmp_path.replace(self._path)

    # Typed access

    def _parse_item(self, key: CacheKey, item: Any) -> BaseModel:
        if not isinstance(item, dict):
            msg = f"Expected an object, got {type(item).__name__}"
            raise ValueError(msg)
        if key == CacheKey.ACTIVITIES:
            return CompletionEvent.from_record(item, origin=EventOrigin.LOCAL, policy=self._policy)
        return Routine.model_validate(item)

    @staticmethod
    def _decode(key: CacheKey, raw: str) -> list[Any]:
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            msg = f"Cache entry {key.value} is not valid JSON: {e}"
            raise CacheCorruptedError(msg) from e
        if not isinstance(items, list):
            msg = f"Cache entry {key.value} holds {type(items).__name__}, expected a list"
            raise CacheCorruptedError(msg)
        return items

    def _read_unlocked(self, key: CacheKey) -> list[Any]:
        raw = self._get_raw(key)
        if not raw:
            return []
        try:
            items = self._decode(key, raw)
        except CacheCorruptedError as e:
            logger.warning("Malformed cache entry, treating as empty: %s", e)
            return []

        parsed = []
        for item in items:
            try:
                parsed.append(self._parse_item(key, item))
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping malformed item in %s: %s", key.value, e)
        return parsed

    def _write_unlocked(self, key: CacheKey, items: Sequence[BaseModel]) -> None:
        records = [
            item.to_record() if isinstance(item, CompletionEvent) else item.model_dump(mode="json", by_alias=True)
            for item in items
        ]
        self._set_raw(key, json.dumps(records))

    def read(self, key: CacheKey) -> list[Any]:
        """Read all items stored under a key.

        Malformed contents are treated as empty; individual malformed items are skipped.
        """
        with self._lock:
            items = self._read_unlocked(key)
            self._record_success()
            return items

    def write(self, key: CacheKey, items: Sequence[BaseModel]) -> None:
        """Replace the items stored under a key.

        Raises:
            OSError: If the backing file cannot be written
        """
        with self._lock:
            self._write_unlocked(key, items)
            self._record_success()
            logger.debug("Wrote %d item(s) to %s", len(items), key.value)

    def update(self, key: CacheKey, mutate: Callable[[list[Any]], list[Any]]) -> list[Any]:
        """Atomically read the current items, apply ``mutate``, and write the result.

        Returns:
            The items written
        """
        with self._lock:
            updated = mutate(self._read_unlocked(key))
            self._write_unlocked(key, updated)
            self._record_success()
            return updated

    def clear(self, key: CacheKey) -> None:
        """Remove every item stored under a key."""
        self.write(key, [])

    # Event helpers

    def read_events(self) -> list[CompletionEvent]:
        return self.read(CacheKey.ACTIVITIES)

    def add_event(self, event: CompletionEvent) -> None:
        """Append a completion event to the activities entry."""
        self.update(CacheKey.ACTIVITIES, lambda events: [*events, event])

    def remove_events(self, predicate: Callable[[CompletionEvent], bool]) -> int:
        """Remove cached events matching ``predicate``.

        Returns:
            Number of events removed
        """
        removed = 0

        def _filter(events: list[CompletionEvent]) -> list[CompletionEvent]:
            nonlocal removed
            kept = [event for event in events if not predicate(event)]
            removed = len(events) - len(kept)
            return kept

        self.update(CacheKey.ACTIVITIES, _filter)
        return removed


# Global cache instance
local_cache = LocalEventCache(settings.local_cache_path)
