"""Core type definitions shared across all nudge modules."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum


class Priority(StrEnum):
    """Urgency of a rule and of the notifications it produces."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Frequency(StrEnum):
    """Informational frequency class of a rule. Enforcement is via cooldown."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class NotificationType(StrEnum):
    """Front-end facing notification kind."""

    REMINDER = "reminder"
    ACHIEVEMENT = "achievement"
    SEO_ISSUE = "seo-issue"
    MILESTONE = "milestone"
    WARNING = "warning"
    TIP = "tip"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
