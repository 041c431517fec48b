"""
Notification sink.

The engine only asks the sink to show and close notifications; rendering
them is the host UI's job. NotificationCenter keeps them in memory so the
host can list them and route clicks back.
"""
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from .models import NotificationOptions

logger = logging.getLogger("engine.notifications")


@dataclass
class Notification:
    """A notification handed to the sink."""
    id: int
    title: str
    options: NotificationOptions
    closed: bool = False

    def close(self) -> None:
        self.closed = True

    @property
    def data(self) -> Optional[dict]:
        return self.options.data

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "closed": self.closed,
            **self.options.model_dump(by_alias=True),
        }


class NotificationSink(Protocol):
    """Displays notifications."""

    def show(self, title: str, options: NotificationOptions) -> Notification:
        ...


class NotificationCenter:
    """In-memory notification sink."""

    def __init__(self):
        self._notifications: Dict[int, Notification] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def show(self, title: str, options: NotificationOptions) -> Notification:
        with self._lock:
            notification = Notification(id=next(self._ids), title=title, options=options)
            self._notifications[notification.id] = notification
        logger.info(f"Showing notification: {title} [tag={options.tag}]")
        return notification

    def get(self, notification_id: int) -> Optional[Notification]:
        with self._lock:
            return self._notifications.get(notification_id)

    def displayed(self) -> List[Notification]:
        """Notifications not yet closed, oldest first."""
        with self._lock:
            return [n for n in self._notifications.values() if not n.closed]

    def all(self) -> List[Notification]:
        with self._lock:
            return list(self._notifications.values())
