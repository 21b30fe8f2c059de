"""Notification feed for user-facing, non-blocking messages."""

import logging
import threading
from collections import deque

from src.core.config import settings
from src.core.errors import ErrorResponse
from src.models.service_models import Notification, NotificationLevel


logger = logging.getLogger(__name__)


class Notifier:
    """Bounded in-process feed of notifications, newest last."""

    def __init__(self, max_items: int | None = None) -> None:
        self._items: deque[Notification] = deque(maxlen=max_items or settings.notification_feed_size)
        self._lock = threading.Lock()

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        with self._lock:
            self._items.append(notification)
        log_level = logging.WARNING if level == NotificationLevel.ERROR else logging.INFO
        logger.log(log_level, "notification: %s", message, extra={"level": level.value})
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, message)

    def error(self, message: str, *, response: ErrorResponse | None = None) -> Notification:
        """Record an error notification, appending the classified message when given."""
        if response is not None:
            message = f"{message}: {response.message}"
        return self.notify(NotificationLevel.ERROR, message)

    def recent(self, limit: int | None = None) -> list[Notification]:
        """Most recent notifications, newest first."""
        with self._lock:
            items = list(reversed(self._items))
        return items[:limit] if limit is not None else items

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


# Global notifier instance
notifier = Notifier()
