"""Metrics snapshot data models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from nudge.core.types import utcnow


class MetricsSnapshot(BaseModel):
    """Point-in-time derived metrics for one entity in one evaluation run."""

    model_config = {"frozen": True}

    unique_visitors: int = 0
    profile_views: int = 0
    total_calls: int = 0
    total_clicks: int = 0
    reviews_this_month: int = 0
    seo_score: float = 0.0
    seo_score_change: float = 0.0
    completion_score: float = 0.0
    days_since_content_update: int = 0
    traffic_change: float = 0.0
    market_rank: int | None = None
    computed_at: datetime = Field(default_factory=utcnow)


class ActivityCounts(BaseModel):
    """Traffic and engagement aggregates for the trailing month.

    Produced by the external analytics aggregation; the engine only
    combines them with profile-derived scores.
    """

    unique_visitors: int = 0
    profile_views: int = 0
    total_calls: int = 0
    total_clicks: int = 0
    reviews_this_month: int = 0
    traffic_change: float = 0.0
    market_rank: int | None = None
