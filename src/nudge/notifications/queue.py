"""Notification queue: enqueue with dedup, scheduled sweeps, lifecycle and stats."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from nudge.core.config import NotificationConfig
from nudge.core.errors import NotificationNotFound
from nudge.core.types import utcnow
from nudge.notifications.dispatcher import Dispatcher
from nudge.notifications.models import (
    CategoryCount,
    DeliveryResult,
    EngagementAction,
    EnqueueResult,
    MutationResult,
    Notification,
    NotificationStats,
    PendingNotification,
)
from nudge.repositories import resolve

logger = logging.getLogger(__name__)


class NotificationQueue:
    """Owns the notification lifecycle on top of a notification repository.

    The repository may be the in-memory ``NotificationStore`` or the
    Postgres repository; every call goes through ``resolve``.

    Args:
        store: Notification repository.
        dispatcher: Delivery dispatcher, also used to record engagement.
        config: Windows, expiry and batch sizes.
    """

    def __init__(
        self,
        store: Any,
        dispatcher: Dispatcher,
        config: NotificationConfig | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._config = config or NotificationConfig()

    @property
    def store(self) -> Any:
        return self._store

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    async def enqueue(
        self,
        item: PendingNotification | Notification,
        now: datetime | None = None,
    ) -> EnqueueResult:
        """Store a notification unless an identical one exists in the dedup window.

        Identical means same entity, type and title, created within the
        window and not dismissed. Notifications without a future
        ``scheduled_for`` are delivered before this returns.
        """
        now = now or utcnow()
        if isinstance(item, PendingNotification):
            notification = item.to_notification(
                created_at=now,
                default_expiry=timedelta(days=self._config.default_expiry_days),
            )
        else:
            notification = item

        since = now - timedelta(hours=self._config.dedup_window_hours)
        stored, duplicate = await resolve(self._store.add_unless_duplicate(notification, since))
        if duplicate:
            logger.info(
                "Skipping duplicate notification for entity %s: %r (existing %s)",
                notification.entity_id, notification.title, stored.id,
            )
            return EnqueueResult(id=stored.id, duplicate=True)

        logger.info("Notification %s enqueued for entity %s", stored.id, stored.entity_id)
        if stored.scheduled_for is None or stored.scheduled_for <= now:
            await self._deliver(stored, now)
        return EnqueueResult(id=stored.id)

    async def process_scheduled(self, now: datetime | None = None) -> int:
        """Deliver due notifications, oldest first, one bounded batch per call.

        Due covers scheduled notifications whose time has come and immediate
        ones left unsent by an interrupted enqueue. Each item is marked,
        saved and dispatched on its own; store errors are raised after the
        rest of the batch has gone out.
        """
        now = now or utcnow()
        due: list[Notification] = await resolve(
            self._store.list_due(now, self._config.scheduled_batch_size)
        )
        if not due:
            return 0

        results = await asyncio.gather(
            *(self._deliver(n, now) for n in due), return_exceptions=True
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        failures = sum(1 for r in results if not isinstance(r, BaseException) and not r.success)
        logger.info(
            "Processed %d scheduled notifications (%d delivery failures, %d store errors)",
            len(due) - len(errors), failures, len(errors),
        )
        if errors:
            raise errors[0]
        return len(due)

    async def get(self, notification_id: str, entity_id: str) -> Notification:
        notification = await resolve(self._store.get(notification_id))
        if notification is None or notification.entity_id != entity_id:
            raise NotificationNotFound(notification_id, entity_id)
        return notification

    async def mark_read(
        self, notification_id: str, entity_id: str, now: datetime | None = None
    ) -> MutationResult:
        now = now or utcnow()
        notification = await self.get(notification_id, entity_id)
        changed = notification.mark_read(now)
        if changed:
            await resolve(self._store.save(notification))
            await self._dispatcher.track(notification, EngagementAction.READ, at=now)
        return MutationResult(id=notification.id, changed=changed, state=notification.state)

    async def dismiss(
        self, notification_id: str, entity_id: str, now: datetime | None = None
    ) -> MutationResult:
        now = now or utcnow()
        notification = await self.get(notification_id, entity_id)
        changed = notification.dismiss(now)
        if changed:
            await resolve(self._store.save(notification))
            await self._dispatcher.track(notification, EngagementAction.DISMISSED, at=now)
        return MutationResult(id=notification.id, changed=changed, state=notification.state)

    async def record_click(
        self, notification_id: str, entity_id: str, now: datetime | None = None
    ) -> MutationResult:
        now = now or utcnow()
        notification = await self.get(notification_id, entity_id)
        await self._dispatcher.track(notification, EngagementAction.CLICKED, at=now)
        return MutationResult(id=notification.id, changed=True, state=notification.state)

    async def get_for_entity(
        self,
        entity_id: str,
        limit: int | None = None,
        unread_only: bool = False,
        category: str | None = None,
        include_expired: bool = False,
        now: datetime | None = None,
    ) -> list[Notification]:
        return await resolve(
            self._store.list_for_entity(
                entity_id,
                now=now or utcnow(),
                limit=limit or self._config.default_list_limit,
                unread_only=unread_only,
                category=category,
                include_expired=include_expired,
            )
        )

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        """Delete expired notifications older than the retention floor."""
        now = now or utcnow()
        created_before = now - timedelta(days=self._config.retention_days)
        deleted = await resolve(
            self._store.delete_expired(now, created_before, self._config.cleanup_batch_size)
        )
        if deleted:
            logger.info("Cleaned up %d expired notifications", deleted)
        return deleted

    async def stats(
        self, entity_id: str, days: int = 30, now: datetime | None = None
    ) -> NotificationStats:
        now = now or utcnow()
        notifications: list[Notification] = await resolve(
            self._store.list_created_since(entity_id, now - timedelta(days=days))
        )

        total_sent = sum(1 for n in notifications if n.sent_at is not None)
        total_read = sum(1 for n in notifications if n.read_at is not None)
        total_dismissed = sum(1 for n in notifications if n.dismissed)

        response_minutes = [
            (n.read_at - n.sent_at).total_seconds() / 60
            for n in notifications
            if n.sent_at is not None and n.read_at is not None
        ]
        avg_response = sum(response_minutes) / len(response_minutes) if response_minutes else 0.0

        categories = Counter(n.category or "general" for n in notifications)
        top = [
            CategoryCount(category=category, count=count)
            for category, count in categories.most_common(self._config.top_categories)
        ]

        return NotificationStats(
            total_sent=total_sent,
            total_read=total_read,
            total_dismissed=total_dismissed,
            read_rate=total_read / total_sent if total_sent else 0.0,
            avg_response_time_minutes=round(avg_response, 2),
            top_categories=top,
        )

    async def _deliver(self, notification: Notification, now: datetime) -> DeliveryResult:
        # Mark a copy so a failed save leaves the stored record unsent.
        if notification.sent_at is None:
            sent = notification.model_copy()
            sent.mark_sent(now)
            await resolve(self._store.save(sent))
            notification = sent
        return await self._dispatcher.dispatch(notification, now)
