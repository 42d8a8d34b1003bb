"""In-memory notification and engagement stores."""

from __future__ import annotations

from datetime import datetime

from nudge.core.types import NotificationType
from nudge.notifications.models import EngagementEvent, Notification


class NotificationStore:
    """In-memory store for notifications.

    Methods never await, so each call is atomic with respect to other
    coroutines on the same event loop. ``add_unless_duplicate`` relies on
    this for its check-then-insert.
    """

    def __init__(self) -> None:
        self._notifications: dict[str, Notification] = {}

    def save(self, notification: Notification) -> Notification:
        self._notifications[notification.id] = notification
        return notification

    def get(self, notification_id: str) -> Notification | None:
        return self._notifications.get(notification_id)

    def find_duplicate(
        self,
        entity_id: str,
        type: NotificationType,
        title: str,
        since: datetime,
    ) -> Notification | None:
        for n in self._notifications.values():
            if (
                n.entity_id == entity_id
                and n.type == type
                and n.title == title
                and n.created_at >= since
                and not n.dismissed
            ):
                return n
        return None

    def add_unless_duplicate(
        self, notification: Notification, since: datetime
    ) -> tuple[Notification, bool]:
        """Insert unless a matching notification exists; return (record, duplicate)."""
        existing = self.find_duplicate(
            notification.entity_id, notification.type, notification.title, since
        )
        if existing is not None:
            return existing, True
        self._notifications[notification.id] = notification
        return notification, False

    def has_recent_in_category(self, entity_id: str, category: str, since: datetime) -> bool:
        return any(
            n.entity_id == entity_id and n.category == category and n.created_at >= since
            for n in self._notifications.values()
        )

    def list_for_entity(
        self,
        entity_id: str,
        *,
        now: datetime,
        limit: int = 20,
        unread_only: bool = False,
        category: str | None = None,
        include_expired: bool = False,
    ) -> list[Notification]:
        results = [
            n for n in self._notifications.values()
            if n.entity_id == entity_id
            and (not unread_only or n.read_at is None)
            and (category is None or n.category == category)
            and (include_expired or not n.is_expired(now))
        ]
        results.sort(key=lambda n: n.created_at, reverse=True)
        return results[:limit]

    def list_created_since(self, entity_id: str, since: datetime) -> list[Notification]:
        return [
            n for n in self._notifications.values()
            if n.entity_id == entity_id and n.created_at >= since
        ]

    def list_due(self, now: datetime, limit: int) -> list[Notification]:
        """Unsent, undismissed notifications that are due, oldest first.

        Unscheduled ones are included so an interrupted immediate delivery
        is retried by the next sweep.
        """
        due = [
            n for n in self._notifications.values()
            if n.sent_at is None
            and not n.dismissed
            and (n.scheduled_for is None or n.scheduled_for <= now)
        ]
        due.sort(key=lambda n: n.scheduled_for or n.created_at)
        return due[:limit]

    def delete_expired(self, now: datetime, created_before: datetime, limit: int) -> int:
        doomed = [
            n.id for n in self._notifications.values()
            if n.expires_at < now and n.created_at < created_before
        ][:limit]
        for notification_id in doomed:
            del self._notifications[notification_id]
        return len(doomed)

    def list_all(self) -> list[Notification]:
        return list(self._notifications.values())

    @property
    def count(self) -> int:
        return len(self._notifications)


class EngagementStore:
    """Append-only in-memory store for engagement events."""

    def __init__(self) -> None:
        self._events: list[EngagementEvent] = []

    def add(self, event: EngagementEvent) -> EngagementEvent:
        self._events.append(event)
        return event

    def list_for_notification(self, notification_id: str) -> list[EngagementEvent]:
        return [e for e in self._events if e.notification_id == notification_id]

    def list_for_entity(self, entity_id: str) -> list[EngagementEvent]:
        return [e for e in self._events if e.entity_id == entity_id]

    def list_all(self) -> list[EngagementEvent]:
        return list(self._events)

    @property
    def count(self) -> int:
        return len(self._events)
