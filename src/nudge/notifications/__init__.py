"""Notification lifecycle: storage, queueing and delivery."""

from nudge.notifications.dispatcher import Dispatcher, LoggingTransport, WebhookTransport
from nudge.notifications.models import Notification, PendingNotification
from nudge.notifications.queue import NotificationQueue
from nudge.notifications.store import EngagementStore, NotificationStore

__all__ = [
    "Dispatcher",
    "EngagementStore",
    "LoggingTransport",
    "Notification",
    "NotificationQueue",
    "NotificationStore",
    "PendingNotification",
    "WebhookTransport",
]
