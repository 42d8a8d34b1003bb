"""Metrics snapshot provider Protocol and implementations."""

from __future__ import annotations

from typing import Awaitable, Protocol, runtime_checkable

from nudge.core.errors import SnapshotUnavailable
from nudge.entities.models import Entity
from nudge.metrics.models import ActivityCounts, MetricsSnapshot
from nudge.metrics.scoring import build_snapshot


@runtime_checkable
class MetricsProvider(Protocol):
    """Supplies the snapshot for one entity.

    Failures must raise ``SnapshotUnavailable`` rather than return a
    default snapshot.
    """

    def get_snapshot(self, entity: Entity) -> MetricsSnapshot | Awaitable[MetricsSnapshot]: ...


class InMemoryMetricsProvider:
    """Serves precomputed snapshots keyed by entity id."""

    def __init__(self, snapshots: dict[str, MetricsSnapshot] | None = None) -> None:
        self._snapshots: dict[str, MetricsSnapshot] = dict(snapshots or {})

    def set(self, entity_id: str, snapshot: MetricsSnapshot) -> None:
        self._snapshots[entity_id] = snapshot

    def get_snapshot(self, entity: Entity) -> MetricsSnapshot:
        snapshot = self._snapshots.get(entity.id)
        if snapshot is None:
            raise SnapshotUnavailable(entity.id, "no snapshot recorded")
        return snapshot


class ActivityMetricsProvider:
    """Builds snapshots from activity aggregates plus profile scoring.

    Remembers the SEO score it computed for each entity so the next
    snapshot reports the change since the previous run.
    """

    def __init__(self, activity: dict[str, ActivityCounts] | None = None) -> None:
        self._activity: dict[str, ActivityCounts] = dict(activity or {})
        self._last_seo_scores: dict[str, float] = {}

    def record_activity(self, entity_id: str, counts: ActivityCounts) -> None:
        self._activity[entity_id] = counts

    def get_snapshot(self, entity: Entity) -> MetricsSnapshot:
        counts = self._activity.get(entity.id)
        if counts is None:
            raise SnapshotUnavailable(entity.id, "no activity aggregates")
        snapshot = build_snapshot(
            entity,
            counts,
            previous_seo_score=self._last_seo_scores.get(entity.id),
        )
        self._last_seo_scores[entity.id] = snapshot.seo_score
        return snapshot
