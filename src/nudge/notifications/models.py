"""Notification data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from nudge.core.errors import InvalidTransition
from nudge.core.types import NotificationType, Priority, utcnow

DEFAULT_EXPIRY = timedelta(days=30)


class NotificationState(StrEnum):
    """Lifecycle state derived from the notification's timestamps."""

    QUEUED = "queued"
    SENT = "sent"
    READ = "read"
    DISMISSED = "dismissed"


class EngagementAction(StrEnum):
    SENT = "sent"
    READ = "read"
    DISMISSED = "dismissed"
    CLICKED = "clicked"


class Notification(BaseModel):
    """A persisted notification addressed to one entity's owner.

    ``sent_at`` is written at most once, ``read_at`` only after
    ``sent_at``. Use the ``mark_*`` methods rather than assigning the
    timestamps directly.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    entity_id: str
    type: NotificationType = NotificationType.REMINDER
    priority: Priority = Priority.MEDIUM
    title: str = ""
    message: str = ""
    action_ref: str | None = None
    action_label: str | None = None
    category: str = "general"
    tags: set[str] = Field(default_factory=set)
    data: dict[str, Any] = Field(default_factory=dict)
    scheduled_for: datetime | None = None
    sent_at: datetime | None = None
    read_at: datetime | None = None
    dismissed: bool = False
    dismissed_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_expiry(self) -> Notification:
        if self.expires_at is None:
            self.expires_at = self.created_at + DEFAULT_EXPIRY
        elif self.expires_at < self.created_at:
            raise ValueError("expires_at must not precede created_at")
        return self

    @property
    def state(self) -> NotificationState:
        if self.dismissed:
            return NotificationState.DISMISSED
        if self.read_at is not None:
            return NotificationState.READ
        if self.sent_at is not None:
            return NotificationState.SENT
        return NotificationState.QUEUED

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_due(self, now: datetime) -> bool:
        return self.sent_at is None and (self.scheduled_for is None or self.scheduled_for <= now)

    def mark_sent(self, now: datetime) -> bool:
        if self.sent_at is not None:
            return False
        self.sent_at = now
        self.updated_at = now
        return True

    def mark_read(self, now: datetime) -> bool:
        if self.read_at is not None:
            return False
        if self.sent_at is None:
            raise InvalidTransition(f"Notification {self.id!r} has not been sent yet")
        self.read_at = max(now, self.sent_at)
        self.updated_at = now
        return True

    def dismiss(self, now: datetime) -> bool:
        if self.dismissed:
            return False
        self.dismissed = True
        self.dismissed_at = now
        self.updated_at = now
        return True


class PendingNotification(BaseModel):
    """A notification produced by evaluation or a template, not yet stored."""

    entity_id: str
    type: NotificationType = NotificationType.REMINDER
    priority: Priority = Priority.MEDIUM
    title: str
    message: str
    action_ref: str | None = None
    action_label: str | None = None
    category: str = "general"
    tags: set[str] = Field(default_factory=set)
    data: dict[str, Any] = Field(default_factory=dict)
    rule_id: str | None = None
    rule_name: str | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None

    def to_notification(self, created_at: datetime, default_expiry: timedelta = DEFAULT_EXPIRY) -> Notification:
        return Notification(
            entity_id=self.entity_id,
            type=self.type,
            priority=self.priority,
            title=self.title,
            message=self.message,
            action_ref=self.action_ref,
            action_label=self.action_label,
            category=self.category,
            tags=set(self.tags),
            data=dict(self.data),
            scheduled_for=self.scheduled_for,
            expires_at=self.expires_at or created_at + default_expiry,
            created_at=created_at,
            updated_at=created_at,
        )


class EngagementEvent(BaseModel):
    """Append-only record of a delivery, read, dismiss or click."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    notification_id: str
    entity_id: str
    action: EngagementAction
    timestamp: datetime = Field(default_factory=utcnow)
    details: dict[str, Any] = Field(default_factory=dict)


class EnqueueResult(BaseModel):
    id: str
    duplicate: bool = False


class MutationResult(BaseModel):
    id: str
    changed: bool
    state: NotificationState


class DeliveryResult(BaseModel):
    notification_id: str
    success: bool
    transport: str = ""
    error: str | None = None


class CategoryCount(BaseModel):
    category: str
    count: int


class NotificationStats(BaseModel):
    total_sent: int = 0
    total_read: int = 0
    total_dismissed: int = 0
    read_rate: float = 0.0
    avg_response_time_minutes: float = 0.0
    top_categories: list[CategoryCount] = Field(default_factory=list)
