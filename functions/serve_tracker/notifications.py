"""
User-visible notifications (toasts in the front end).
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    SUCCESS = "success"
    SAVED_LOCALLY = "saved_locally"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    kind: NotificationKind
    title: str
    description: str = ""
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at,
        }


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


_LOG_LEVELS = {
    NotificationKind.SUCCESS: logging.INFO,
    NotificationKind.SAVED_LOCALLY: logging.WARNING,
    NotificationKind.WARNING: logging.WARNING,
    NotificationKind.ERROR: logging.ERROR,
}


class LoggingNotifier:
    def notify(self, notification: Notification) -> None:
        logger.log(
            _LOG_LEVELS[notification.kind],
            "%s: %s",
            notification.title,
            notification.description,
        )


class InMemoryNotifier(LoggingNotifier):
    """Keeps the most recent notifications so the front end can poll them."""

    def __init__(self, max_items: int = 100):
        self.items: deque[Notification] = deque(maxlen=max_items)

    def notify(self, notification: Notification) -> None:
        super().notify(notification)
        self.items.append(notification)

    def recent(self, since: float = 0.0) -> list[Notification]:
        return [n for n in self.items if n.created_at > since]

    def clear(self) -> None:
        self.items.clear()
