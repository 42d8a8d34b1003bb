"""Protocol definitions for the repository interfaces.

Each protocol mirrors the public methods of the corresponding in-memory
store so that sync (in-memory) and async (SQL) implementations satisfy
the same interface. Callers go through ``resolve``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from nudge.audit.models import NudgeLogEntry, NudgeRun
from nudge.core.types import NotificationType
from nudge.notifications.models import EngagementEvent, Notification


@runtime_checkable
class NotificationRepository(Protocol):
    """Protocol for notification storage."""

    def save(self, notification: Notification) -> Any: ...

    def get(self, notification_id: str) -> Any: ...

    def find_duplicate(
        self, entity_id: str, type: NotificationType, title: str, since: datetime
    ) -> Any: ...

    def add_unless_duplicate(self, notification: Notification, since: datetime) -> Any: ...

    def has_recent_in_category(self, entity_id: str, category: str, since: datetime) -> Any: ...

    def list_for_entity(
        self,
        entity_id: str,
        *,
        now: datetime,
        limit: int = 20,
        unread_only: bool = False,
        category: str | None = None,
        include_expired: bool = False,
    ) -> Any: ...

    def list_created_since(self, entity_id: str, since: datetime) -> Any: ...

    def list_due(self, now: datetime, limit: int) -> Any: ...

    def delete_expired(self, now: datetime, created_before: datetime, limit: int) -> Any: ...

    def list_all(self) -> Any: ...


@runtime_checkable
class EngagementRepository(Protocol):
    """Protocol for append-only engagement events."""

    def add(self, event: EngagementEvent) -> Any: ...

    def list_for_notification(self, notification_id: str) -> Any: ...

    def list_for_entity(self, entity_id: str) -> Any: ...

    def list_all(self) -> Any: ...


@runtime_checkable
class NudgeAuditRepository(Protocol):
    """Protocol for the nudge log and run summaries."""

    def log_trigger(self, entry: NudgeLogEntry) -> Any: ...

    def log_run(self, run: NudgeRun) -> Any: ...

    def list_triggers(self, entity_id: str | None = None) -> Any: ...

    def list_runs(self, limit: int = 20) -> Any: ...
