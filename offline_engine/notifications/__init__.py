"""
Push notifications: payload parsing, display and click routing.
"""
from .center import Notification, NotificationCenter, NotificationSink
from .dispatcher import NOTIFICATION_CLICK, NotificationDispatcher
from .models import NotificationAction, NotificationOptions, NotificationPayload

__all__ = [
    "Notification",
    "NotificationCenter",
    "NotificationSink",
    "NOTIFICATION_CLICK",
    "NotificationDispatcher",
    "NotificationAction",
    "NotificationOptions",
    "NotificationPayload",
]
