"""Pydantic models for service layer return types.

These are derived views over completion events; they are regenerated on every
merge and never persisted.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.activity import CompletionEvent, ParentType


class ConsistencyRecord(BaseModel):
    """Distinct completion days for one goal or routine."""

    parent_type: ParentType
    parent_ref: str | None
    title: str
    days_count: int
    recent_days: list[str]


class DayGroup(BaseModel):
    """Timeline entries completed on one calendar day."""

    date: str
    items: list[CompletionEvent]


class ActivitySummary(BaseModel):
    """Counts over a merged timeline."""

    total: int
    goals: int
    routines: int


class BatchResult(BaseModel):
    """Outcome of a best-effort remote cleanup batch."""

    removed: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.removed + self.failed


class ProgressSnapshot(BaseModel):
    """Everything presentation needs after a merge."""

    timeline: list[CompletionEvent]
    streak: int
    consistency: list[ConsistencyRecord]
    days: list[DayGroup]
    summary: ActivitySummary
    today: str
    today_events: list[CompletionEvent]


class NotificationLevel(StrEnum):
    """Notification severity shown to the user."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Notification(BaseModel):
    """Non-blocking user notification."""

    level: NotificationLevel
    message: str
    created_at: datetime = Field(default_factory=datetime.now)
