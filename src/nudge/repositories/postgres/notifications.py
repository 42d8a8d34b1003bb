"""PostgreSQL notification and engagement repositories."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy import delete, func, or_, select

from nudge.core.types import NotificationType, Priority, ensure_utc
from nudge.db.engine import DatabaseManager
from nudge.db.models import EngagementEventRow, NotificationRow
from nudge.notifications.models import EngagementAction, EngagementEvent, Notification
from nudge.repositories.postgres import store_errors


class PostgresNotificationRepository:
    """Postgres-backed notification storage.

    ``add_unless_duplicate`` serialises check-then-insert per entity with an
    ``asyncio.Lock``, so concurrent enqueues in one process cannot both
    insert the same (entity, type, title).
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db
        self._entity_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def save(self, notification: Notification) -> Notification:
        with store_errors("save notification"):
            async with self._db.session() as db:
                existing = await db.get(NotificationRow, notification.id)
                if existing:
                    self._copy_to_row(notification, existing)
                else:
                    row = NotificationRow(id=notification.id)
                    self._copy_to_row(notification, row)
                    db.add(row)
                await db.commit()
        return notification

    async def get(self, notification_id: str) -> Notification | None:
        with store_errors("get notification"):
            async with self._db.session() as db:
                row = await db.get(NotificationRow, notification_id)
                if row is None:
                    return None
                return self._row_to_notification(row)

    async def find_duplicate(
        self,
        entity_id: str,
        type: NotificationType,
        title: str,
        since: datetime,
    ) -> Notification | None:
        with store_errors("find duplicate notification"):
            async with self._db.session() as db:
                result = await db.execute(
                    select(NotificationRow)
                    .where(
                        NotificationRow.entity_id == entity_id,
                        NotificationRow.type == str(type),
                        NotificationRow.title == title,
                        NotificationRow.created_at >= ensure_utc(since),
                        NotificationRow.dismissed.is_(False),
                    )
                    .order_by(NotificationRow.created_at.desc())
                    .limit(1)
                )
                row = result.scalars().first()
                return self._row_to_notification(row) if row else None

    async def add_unless_duplicate(
        self, notification: Notification, since: datetime
    ) -> tuple[Notification, bool]:
        async with self._entity_lock(notification.entity_id):
            existing = await self.find_duplicate(
                notification.entity_id, notification.type, notification.title, since
            )
            if existing is not None:
                return existing, True
            await self.save(notification)
            return notification, False

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str) -> AsyncIterator[None]:
        """Hold the entity's lock, dropping it once no caller holds or awaits it."""
        lock = self._entity_locks.setdefault(entity_id, asyncio.Lock())
        self._lock_users[entity_id] = self._lock_users.get(entity_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[entity_id] -= 1
            if not self._lock_users[entity_id]:
                del self._lock_users[entity_id]
                del self._entity_locks[entity_id]

    async def has_recent_in_category(self, entity_id: str, category: str, since: datetime) -> bool:
        with store_errors("check category cooldown"):
            async with self._db.session() as db:
                result = await db.execute(
                    select(func.count())
                    .select_from(NotificationRow)
                    .where(
                        NotificationRow.entity_id == entity_id,
                        NotificationRow.category == category,
                        NotificationRow.created_at >= ensure_utc(since),
                    )
                )
                return result.scalar_one() > 0

    async def list_for_entity(
        self,
        entity_id: str,
        *,
        now: datetime,
        limit: int = 20,
        unread_only: bool = False,
        category: str | None = None,
        include_expired: bool = False,
    ) -> list[Notification]:
        stmt = select(NotificationRow).where(NotificationRow.entity_id == entity_id)
        if unread_only:
            stmt = stmt.where(NotificationRow.read_at.is_(None))
        if category is not None:
            stmt = stmt.where(NotificationRow.category == category)
        if not include_expired:
            stmt = stmt.where(NotificationRow.expires_at > ensure_utc(now))
        stmt = stmt.order_by(NotificationRow.created_at.desc()).limit(limit)

        with store_errors("list notifications"):
            async with self._db.session() as db:
                result = await db.execute(stmt)
                return [self._row_to_notification(r) for r in result.scalars().all()]

    async def list_created_since(self, entity_id: str, since: datetime) -> list[Notification]:
        with store_errors("list notifications"):
            async with self._db.session() as db:
                result = await db.execute(
                    select(NotificationRow).where(
                        NotificationRow.entity_id == entity_id,
                        NotificationRow.created_at >= ensure_utc(since),
                    )
                )
                return [self._row_to_notification(r) for r in result.scalars().all()]

    async def list_due(self, now: datetime, limit: int) -> list[Notification]:
        with store_errors("list due notifications"):
            async with self._db.session() as db:
                result = await db.execute(
                    select(NotificationRow)
                    .where(
                        NotificationRow.sent_at.is_(None),
                        NotificationRow.dismissed.is_(False),
                        or_(
                            NotificationRow.scheduled_for.is_(None),
                            NotificationRow.scheduled_for <= ensure_utc(now),
                        ),
                    )
                    .order_by(
                        func.coalesce(NotificationRow.scheduled_for, NotificationRow.created_at).asc()
                    )
                    .limit(limit)
                )
                return [self._row_to_notification(r) for r in result.scalars().all()]

    async def delete_expired(self, now: datetime, created_before: datetime, limit: int) -> int:
        with store_errors("delete expired notifications"):
            async with self._db.session() as db:
                result = await db.execute(
                    select(NotificationRow.id)
                    .where(
                        NotificationRow.expires_at < ensure_utc(now),
                        NotificationRow.created_at < ensure_utc(created_before),
                    )
                    .limit(limit)
                )
                ids = list(result.scalars().all())
                if not ids:
                    return 0
                await db.execute(delete(NotificationRow).where(NotificationRow.id.in_(ids)))
                await db.commit()
                return len(ids)

    async def list_all(self) -> list[Notification]:
        with store_errors("list notifications"):
            async with self._db.session() as db:
                result = await db.execute(select(NotificationRow))
                return [self._row_to_notification(r) for r in result.scalars().all()]

    @property
    def count(self) -> int:
        raise NotImplementedError("Use async_count() instead for Postgres")

    async def async_count(self) -> int:
        async with self._db.session() as db:
            result = await db.execute(select(func.count()).select_from(NotificationRow))
            return result.scalar_one()

    @staticmethod
    def _copy_to_row(notification: Notification, row: NotificationRow) -> None:
        row.entity_id = notification.entity_id
        row.type = notification.type.value
        row.priority = notification.priority.value
        row.title = notification.title
        row.message = notification.message
        row.action_ref = notification.action_ref
        row.action_label = notification.action_label
        row.category = notification.category
        row.tags = sorted(notification.tags)
        row.data = notification.data
        row.scheduled_for = notification.scheduled_for
        row.sent_at = notification.sent_at
        row.read_at = notification.read_at
        row.dismissed = notification.dismissed
        row.dismissed_at = notification.dismissed_at
        row.expires_at = notification.expires_at
        row.created_at = notification.created_at
        row.updated_at = notification.updated_at

    @staticmethod
    def _row_to_notification(row: NotificationRow) -> Notification:
        return Notification(
            id=row.id,
            entity_id=row.entity_id,
            type=NotificationType(row.type),
            priority=Priority(row.priority),
            title=row.title,
            message=row.message,
            action_ref=row.action_ref,
            action_label=row.action_label,
            category=row.category,
            tags=set(row.tags or []),
            data=row.data or {},
            scheduled_for=ensure_utc(row.scheduled_for),
            sent_at=ensure_utc(row.sent_at),
            read_at=ensure_utc(row.read_at),
            dismissed=row.dismissed,
            dismissed_at=ensure_utc(row.dismissed_at),
            expires_at=ensure_utc(row.expires_at),
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )


class PostgresEngagementRepository:
    """Append-only engagement events in ``notification_engagement``."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def add(self, event: EngagementEvent) -> EngagementEvent:
        with store_errors("record engagement"):
            async with self._db.session() as db:
                db.add(EngagementEventRow(
                    id=event.id,
                    notification_id=event.notification_id,
                    entity_id=event.entity_id,
                    action=event.action.value,
                    timestamp=event.timestamp,
                    details=event.details,
                ))
                await db.commit()
        return event

    async def list_for_notification(self, notification_id: str) -> list[EngagementEvent]:
        return await self._list(EngagementEventRow.notification_id == notification_id)

    async def list_for_entity(self, entity_id: str) -> list[EngagementEvent]:
        return await self._list(EngagementEventRow.entity_id == entity_id)

    async def list_all(self) -> list[EngagementEvent]:
        return await self._list()

    @property
    def count(self) -> int:
        raise NotImplementedError("Use async_count() instead for Postgres")

    async def async_count(self) -> int:
        async with self._db.session() as db:
            result = await db.execute(select(func.count()).select_from(EngagementEventRow))
            return result.scalar_one()

    async def _list(self, *conditions) -> list[EngagementEvent]:
        with store_errors("list engagement"):
            async with self._db.session() as db:
                result = await db.execute(
                    select(EngagementEventRow)
                    .where(*conditions)
                    .order_by(EngagementEventRow.timestamp.asc())
                )
                return [
                    EngagementEvent(
                        id=r.id,
                        notification_id=r.notification_id,
                        entity_id=r.entity_id,
                        action=EngagementAction(r.action),
                        timestamp=ensure_utc(r.timestamp),
                        details=r.details or {},
                    )
                    for r in result.scalars().all()
                ]
