from src.services import (
    consistency_service,
    merge_service,
    notification_service,
    reconciliation_service,
    streak_service,
)


__all__ = [
    "consistency_service",
    "merge_service",
    "notification_service",
    "reconciliation_service",
    "streak_service",
]
