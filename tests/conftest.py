"""Shared test fixtures and helpers."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from nudge.db.base import Base
from nudge.db.engine import DatabaseManager
from nudge.entities.models import Entity
from nudge.metrics.models import MetricsSnapshot
from nudge.notifications.models import Notification

import nudge.db.models  # noqa: F401

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def make_entity(entity_id: str = "clinic-1", **overrides) -> Entity:
    """An entity whose profile fires none of the profile rules by default."""
    fields = {
        "id": entity_id,
        "name": "Riverside Clinic",
        "phone": "555-010-0199",
        "package": "free",
        "address": "12 River Rd",
        "website": "https://riverside.example",
        "services": ["general"],
        "has_seo_content": True,
    }
    fields.update(overrides)
    return Entity(**fields)


def quiet_snapshot(**overrides) -> MetricsSnapshot:
    """A snapshot that triggers no rule on its own."""
    fields = {
        "unique_visitors": 10,
        "profile_views": 10,
        "total_calls": 1,
        "total_clicks": 3,
        "reviews_this_month": 1,
        "seo_score": 85,
        "seo_score_change": 0,
        "completion_score": 100,
        "days_since_content_update": 2,
        "traffic_change": 0,
        "market_rank": None,
    }
    fields.update(overrides)
    return MetricsSnapshot(**fields)


def sent_notification(**overrides) -> Notification:
    fields = {
        "entity_id": "clinic-1",
        "title": "Hello",
        "message": "World",
        "created_at": NOW,
        "updated_at": NOW,
        "sent_at": NOW,
    }
    fields.update(overrides)
    return Notification(**fields)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
async def db():
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.close()
