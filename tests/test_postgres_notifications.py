"""Tests for the SQL notification, engagement and audit repositories with SQLite async."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from nudge.audit.models import NudgeLogEntry, NudgeRun
from nudge.core.errors import StoreUnavailable
from nudge.core.types import NotificationType
from nudge.db.base import Base
from nudge.notifications.dispatcher import Dispatcher, LoggingTransport
from nudge.notifications.models import (
    EngagementAction,
    EngagementEvent,
    Notification,
    PendingNotification,
)
from nudge.notifications.queue import NotificationQueue
from nudge.repositories.postgres.audit import PostgresNudgeAuditRepository
from nudge.repositories.postgres.notifications import (
    PostgresEngagementRepository,
    PostgresNotificationRepository,
)
from nudge.rules.cooldown import CooldownChecker
from tests.conftest import NOW, sent_notification


@pytest.fixture
def repo(db):
    return PostgresNotificationRepository(db)


@pytest.fixture
def engagement(db):
    return PostgresEngagementRepository(db)


@pytest.fixture
def audit(db):
    return PostgresNudgeAuditRepository(db)


async def test_save_and_get(repo):
    n = sent_notification(tags={"seo_score_drop"}, data={"rule_id": "seo_score_drop"})
    await repo.save(n)
    found = await repo.get(n.id)
    assert found is not None
    assert found.title == "Hello"
    assert found.tags == {"seo_score_drop"}
    assert found.data == {"rule_id": "seo_score_drop"}
    assert found.created_at == NOW
    assert found.sent_at == NOW
    assert found.expires_at == NOW + timedelta(days=30)


async def test_get_missing(repo):
    assert await repo.get("nope") is None


async def test_update_notification(repo):
    n = sent_notification()
    await repo.save(n)
    n.mark_read(NOW + timedelta(minutes=5))
    await repo.save(n)
    found = await repo.get(n.id)
    assert found.read_at == NOW + timedelta(minutes=5)
    assert await repo.async_count() == 1


async def test_add_unless_duplicate(repo):
    since = NOW - timedelta(hours=24)
    first, dup = await repo.add_unless_duplicate(sent_notification(), since)
    assert not dup
    again, dup = await repo.add_unless_duplicate(sent_notification(), since)
    assert dup
    assert again.id == first.id
    other, dup = await repo.add_unless_duplicate(sent_notification(type=NotificationType.TIP), since)
    assert not dup


async def test_concurrent_add_unless_duplicate(repo):
    since = NOW - timedelta(hours=24)
    results = await asyncio.gather(
        *(repo.add_unless_duplicate(sent_notification(), since) for _ in range(5))
    )
    assert sum(1 for _, dup in results if not dup) == 1
    assert await repo.async_count() == 1


async def test_dismissed_is_not_duplicate(repo):
    await repo.save(sent_notification(dismissed=True, dismissed_at=NOW))
    _, dup = await repo.add_unless_duplicate(sent_notification(), NOW - timedelta(hours=24))
    assert not dup


async def test_has_recent_in_category(repo):
    await repo.save(sent_notification(category="seo", dismissed=True))
    assert await repo.has_recent_in_category("clinic-1", "seo", NOW - timedelta(hours=1))
    assert not await repo.has_recent_in_category("clinic-1", "seo", NOW + timedelta(hours=1))
    assert not await repo.has_recent_in_category("clinic-1", "profile", NOW - timedelta(hours=1))


async def test_list_for_entity(repo):
    await repo.save(sent_notification(title="old", created_at=NOW - timedelta(hours=2)))
    await repo.save(sent_notification(title="new", category="seo"))
    await repo.save(sent_notification(title="short", expires_at=NOW + timedelta(minutes=30)))
    await repo.save(sent_notification(title="other", entity_id="clinic-2"))

    later = NOW + timedelta(hours=1)
    titles = [n.title for n in await repo.list_for_entity("clinic-1", now=later)]
    assert titles == ["new", "old"]
    assert len(await repo.list_for_entity("clinic-1", now=later, include_expired=True)) == 3
    seo = await repo.list_for_entity("clinic-1", now=later, category="seo")
    assert [n.title for n in seo] == ["new"]
    assert len(await repo.list_for_entity("clinic-1", now=later, limit=1)) == 1


async def test_list_due_and_delete_expired(repo):
    scheduled = Notification(entity_id="clinic-1", title="later", created_at=NOW,
                             scheduled_for=NOW + timedelta(hours=1))
    await repo.save(scheduled)
    assert await repo.list_due(NOW, limit=50) == []
    due = await repo.list_due(NOW + timedelta(hours=1), limit=50)
    assert [n.id for n in due] == [scheduled.id]

    old = sent_notification(title="old", created_at=NOW - timedelta(days=100),
                            expires_at=NOW - timedelta(days=70))
    await repo.save(old)
    assert await repo.delete_expired(NOW, NOW - timedelta(days=90), limit=100) == 1
    assert await repo.get(old.id) is None
    assert await repo.delete_expired(NOW, NOW - timedelta(days=90), limit=100) == 0


async def test_list_created_since(repo):
    await repo.save(sent_notification(title="ancient", created_at=NOW - timedelta(days=40)))
    await repo.save(sent_notification(title="recent"))
    found = await repo.list_created_since("clinic-1", NOW - timedelta(days=30))
    assert [n.title for n in found] == ["recent"]


async def test_engagement_repository(engagement):
    n = sent_notification()
    await engagement.add(EngagementEvent(notification_id=n.id, entity_id="clinic-1",
                                         action=EngagementAction.SENT, timestamp=NOW,
                                         details={"transport": "log"}))
    await engagement.add(EngagementEvent(notification_id=n.id, entity_id="clinic-1",
                                         action=EngagementAction.READ,
                                         timestamp=NOW + timedelta(minutes=1)))
    events = await engagement.list_for_notification(n.id)
    assert [e.action for e in events] == [EngagementAction.SENT, EngagementAction.READ]
    assert events[0].details == {"transport": "log"}
    assert len(await engagement.list_for_entity("clinic-1")) == 2
    assert len(await engagement.list_all()) == 2
    assert await engagement.async_count() == 2


async def test_audit_repository(audit):
    entry = NudgeLogEntry(entity_id="clinic-1", rule_id="seo_score_drop", rule_name="SEO",
                          notification_id="n1", title="SEO Score Alert", triggered_at=NOW)
    await audit.log_trigger(entry)
    assert await audit.list_triggers("clinic-1") == [entry]
    assert await audit.list_triggers("clinic-2") == []

    older = NudgeRun(total_entities=3, processed=2, errors=1, failed_entities=["x"],
                     started_at=NOW, completed_at=NOW)
    newer = NudgeRun(started_at=NOW + timedelta(days=1), completed_at=NOW + timedelta(days=1))
    await audit.log_run(older)
    await audit.log_run(newer)
    runs = await audit.list_runs()
    assert [r.id for r in runs] == [newer.id, older.id]
    assert runs[1].failed_entities == ["x"]
    assert len(await audit.list_runs(limit=1)) == 1


async def test_queue_over_sql_repositories(repo, engagement):
    queue = NotificationQueue(repo, Dispatcher(LoggingTransport(), engagement))
    checker = CooldownChecker(repo)
    item = PendingNotification(entity_id="clinic-1", title="Boost Your Engagement",
                               message="m", category="engagement")

    first = await queue.enqueue(item, NOW)
    second = await queue.enqueue(item, NOW + timedelta(hours=1))
    assert second.duplicate and second.id == first.id
    assert not await checker.is_eligible("clinic-1", "engagement", 72, NOW + timedelta(hours=2))

    result = await queue.mark_read(first.id, "clinic-1", NOW + timedelta(minutes=10))
    assert result.changed
    stats = await queue.stats("clinic-1", now=NOW + timedelta(hours=1))
    assert stats.total_read == 1
    assert stats.avg_response_time_minutes == 10.0
    actions = [e.action for e in await engagement.list_for_notification(first.id)]
    assert actions == [EngagementAction.SENT, EngagementAction.READ]


async def test_database_errors_become_store_unavailable(db, repo):
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    with pytest.raises(StoreUnavailable) as exc_info:
        await repo.get("anything")
    assert isinstance(exc_info.value.__cause__, OperationalError)


class FlakyNotificationRepository(PostgresNotificationRepository):
    """Raises StoreUnavailable on one chosen call to ``save``."""

    def __init__(self, db, fail_on: int) -> None:
        super().__init__(db)
        self.saves = 0
        self.fail_on = fail_on

    async def save(self, notification):
        self.saves += 1
        if self.saves == self.fail_on:
            raise StoreUnavailable("save notification failed")
        return await super().save(notification)


async def test_interrupted_immediate_delivery_is_swept(db, engagement):
    # First save inserts the row, the second (marking it sent) fails.
    repo = FlakyNotificationRepository(db, fail_on=2)
    transport = LoggingTransport()
    queue = NotificationQueue(repo, Dispatcher(transport, engagement))
    item = PendingNotification(entity_id="clinic-1", title="Boost Your Engagement", message="m")

    with pytest.raises(StoreUnavailable):
        await queue.enqueue(item, NOW)
    [stranded] = await repo.list_for_entity("clinic-1", now=NOW)
    assert stranded.sent_at is None
    assert transport.delivered == []

    assert await queue.process_scheduled(NOW + timedelta(minutes=5)) == 1
    delivered = await repo.get(stranded.id)
    assert delivered.sent_at == NOW + timedelta(minutes=5)
    assert [n.id for n in transport.delivered] == [stranded.id]
    actions = [e.action for e in await engagement.list_for_notification(stranded.id)]
    assert actions == [EngagementAction.SENT]
    assert await queue.process_scheduled(NOW + timedelta(minutes=10)) == 0


async def test_list_due_includes_unsent_immediate(repo):
    scheduled = Notification(entity_id="clinic-1", title="scheduled", created_at=NOW - timedelta(hours=2),
                             scheduled_for=NOW - timedelta(minutes=30))
    immediate = Notification(entity_id="clinic-1", title="immediate", created_at=NOW - timedelta(hours=1))
    await repo.save(scheduled)
    await repo.save(immediate)
    await repo.save(sent_notification(title="already sent"))
    due = await repo.list_due(NOW, limit=50)
    assert [n.title for n in due] == ["immediate", "scheduled"]


async def test_entity_locks_are_released(repo):
    since = NOW - timedelta(hours=24)
    await asyncio.gather(*(repo.add_unless_duplicate(sent_notification(), since) for _ in range(4)))
    for i in range(3):
        await repo.add_unless_duplicate(sent_notification(entity_id=f"clinic-{i + 2}"), since)
    assert await repo.async_count() == 4
    assert repo._entity_locks == {}
    assert repo._lock_users == {}
