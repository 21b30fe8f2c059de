"""Completion event domain models and enums."""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.config import constants
from src.core.day_keys import DayKeyPolicy, get_default_policy, parse_timestamp


class ParentType(StrEnum):
    """Kind of item a completion event belongs to."""

    GOAL = "goal"
    ROUTINE = "routine"


class EventOrigin(StrEnum):
    """Where a completion event was recorded."""

    LOCAL = "local"
    SERVER = "server"


def new_local_event_id() -> str:
    """Generate an identifier for an event recorded only in the local cache."""
    return f"{constants.LOCAL_EVENT_ID_PREFIX}{uuid.uuid4().hex}"


class CompletionEvent(BaseModel):
    """Immutable fact: an item was completed at a point in time.

    Field aliases match the activity records exchanged with the API
    (``_id``, ``type``, ``refId``, ``dateString``, ``completedAt``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="_id", description="Server id, or a locally generated id for local events")
    parent_type: ParentType = Field(..., alias="type", description="Goal or routine")
    parent_ref: str | None = Field(default=None, alias="refId", description="ID of the owning goal/routine")
    title: str = Field(default="", description="Parent title at completion time")
    completed_at: str | None = Field(default=None, alias="completedAt", description="Completion time (ISO format)")
    day_key: str = Field(..., alias="dateString", description="Calendar day of completion (YYYY-MM-DD)")
    origin: EventOrigin = Field(default=EventOrigin.SERVER, description="Local cache or server")

    @property
    def completed_instant(self) -> datetime | None:
        """Parsed completion time, or None if missing/unparseable."""
        return parse_timestamp(self.completed_at)

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        *,
        origin: EventOrigin | None = None,
        policy: DayKeyPolicy | None = None,
    ) -> "CompletionEvent":
        """Build an event from an API or cache record.

        The day key is taken from ``dateString`` when present, otherwise derived
        from ``completedAt`` (falling back to ``createdAt``) under ``policy``.
        Local records without an id receive a generated local id.

        Raises:
            ValueError: If no day key can be determined or required fields are missing
        """
        policy = policy or get_default_policy()
        resolved_origin = origin or EventOrigin(record.get("origin", EventOrigin.LOCAL))

        completed_at = record.get("completedAt") or record.get("createdAt")
        day_key = record.get("dateString") or policy.day_key(completed_at)
        if not day_key:
            msg = f"Activity record {record.get('_id') or record.get('id')!r} has no usable date"
            raise ValueError(msg)

        record_id = record.get("_id") or record.get("id")
        if not record_id:
            if resolved_origin == EventOrigin.SERVER:
                msg = "Server activity record is missing its id"
                raise ValueError(msg)
            record_id = new_local_event_id()

        ref = record.get("refId")
        return cls(
            id=str(record_id),
            parent_type=ParentType(record.get("type")),
            parent_ref=str(ref) if ref else None,
            title=record.get("title") or "",
            completed_at=completed_at if isinstance(completed_at, str) else None,
            day_key=day_key,
            origin=resolved_origin,
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the API/cache record shape."""
        return self.model_dump(mode="json", by_alias=True)
