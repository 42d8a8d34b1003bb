"""Deterministic profile scoring used to build metrics snapshots."""

from __future__ import annotations

import math
from datetime import datetime

from nudge.core.types import ensure_utc, utcnow
from nudge.entities.models import Entity
from nudge.metrics.models import ActivityCounts, MetricsSnapshot

# Reported when an entity has never published content
NO_CONTENT_DAYS = 999

_COMPLETION_FIELDS = 7


def seo_score(entity: Entity) -> int:
    """Score search readiness out of 100.

    Basic info is worth 40 points, SEO optimisation 30 and engagement 30.
    """
    meta = entity.seo_meta
    score = 0

    if entity.name:
        score += 5
    if entity.address:
        score += 5
    if entity.phone:
        score += 5
    if entity.website:
        score += 5
    if entity.services:
        score += 10
    if meta and meta.description:
        score += 10

    if meta and meta.title:
        score += 10
    if meta and meta.keywords:
        score += 10
    if entity.has_seo_content:
        score += 10

    if entity.rating is not None and entity.rating > 4:
        score += 15
    if entity.package != "free":
        score += 15

    return min(score, 100)


def completion_score(entity: Entity) -> int:
    """Percentage of the seven core profile fields that are filled in."""
    meta = entity.seo_meta
    filled = [
        bool(entity.name),
        bool(entity.address),
        bool(entity.phone),
        bool(entity.website),
        bool(entity.services),
        bool(meta and meta.title and meta.description),
        entity.has_seo_content,
    ]
    return round(sum(filled) * 100 / _COMPLETION_FIELDS)


def days_since_update(entity: Entity, now: datetime | None = None) -> int:
    if not entity.has_seo_content or entity.content_updated_at is None:
        return NO_CONTENT_DAYS
    now = now or utcnow()
    elapsed = now - ensure_utc(entity.content_updated_at)
    return max(math.floor(elapsed.total_seconds() / 86400), 0)


def build_snapshot(
    entity: Entity,
    activity: ActivityCounts,
    previous_seo_score: float | None = None,
    now: datetime | None = None,
) -> MetricsSnapshot:
    """Combine activity aggregates with profile-derived scores."""
    now = now or utcnow()
    score = seo_score(entity)
    change = score - previous_seo_score if previous_seo_score is not None else 0.0
    return MetricsSnapshot(
        unique_visitors=activity.unique_visitors,
        profile_views=activity.profile_views,
        total_calls=activity.total_calls,
        total_clicks=activity.total_clicks,
        reviews_this_month=activity.reviews_this_month,
        seo_score=score,
        seo_score_change=change,
        completion_score=completion_score(entity),
        days_since_content_update=days_since_update(entity, now),
        traffic_change=activity.traffic_change,
        market_rank=activity.market_rank,
        computed_at=now,
    )
