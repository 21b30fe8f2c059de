"""Domain models and DTOs."""

from src.domain.activity import CompletionEvent, EventOrigin, ParentType, new_local_event_id
from src.domain.item import Goal, Routine


__all__ = [
    "CompletionEvent",
    "EventOrigin",
    "Goal",
    "ParentType",
    "Routine",
    "new_local_event_id",
]
