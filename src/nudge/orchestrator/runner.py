"""Batch orchestrator running nudge evaluation across the entity population.

Entities are processed in fixed-size batches: every entity in a batch is
evaluated concurrently, batches run one after another with a fixed delay
in between. The delay is the backpressure on the metrics provider and the
delivery transport.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from nudge.audit.models import NudgeLogEntry, NudgeRun
from nudge.core.config import RunnerConfig
from nudge.core.errors import SnapshotUnavailable
from nudge.core.types import utcnow
from nudge.entities.models import Entity
from nudge.metrics.models import MetricsSnapshot
from nudge.notifications.models import PendingNotification
from nudge.notifications.queue import NotificationQueue
from nudge.repositories import resolve
from nudge.rules.engine import RuleEngine

logger = logging.getLogger(__name__)


class EntityResult(BaseModel):
    """Outcome of evaluating and enqueueing nudges for one entity."""

    entity_id: str
    created: int = 0
    duplicates: int = 0
    notification_ids: list[str] = Field(default_factory=list)


class NudgeRunner:
    """Drives snapshot -> evaluate -> enqueue for every active entity.

    Args:
        directory: Entity directory (``list_active`` / ``get``).
        metrics: Metrics snapshot provider.
        engine: Rule engine.
        queue: Notification queue.
        audit: Store receiving nudge logs and run summaries.
        config: Batch size, inter-batch delay and per-entity timeout.
        sleep: Coroutine used for the inter-batch delay.
    """

    def __init__(
        self,
        directory: Any,
        metrics: Any,
        engine: RuleEngine,
        queue: NotificationQueue,
        audit: Any,
        config: RunnerConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._directory = directory
        self._metrics = metrics
        self._engine = engine
        self._queue = queue
        self._audit = audit
        self._config = config or RunnerConfig()
        self._sleep = sleep

    async def run_for_all_entities(self) -> NudgeRun:
        started_at = utcnow()
        clock = time.monotonic()

        entities: list[Entity] = await resolve(self._directory.list_active())
        logger.info("Analyzing %d entities for nudge opportunities", len(entities))

        run = NudgeRun(total_entities=len(entities), started_at=started_at)
        batch_size = max(1, self._config.batch_size)

        for start in range(0, len(entities), batch_size):
            batch = entities[start:start + batch_size]
            outcomes = await asyncio.gather(*(self._process_guarded(e) for e in batch))

            for entity, outcome in zip(batch, outcomes):
                if outcome is None:
                    run.errors += 1
                    run.failed_entities.append(entity.id)
                    continue
                run.processed += 1
                run.notifications_created += outcome.created
                run.duplicates_suppressed += outcome.duplicates

            if start + batch_size < len(entities) and self._config.batch_delay_seconds > 0:
                await self._sleep(self._config.batch_delay_seconds)

        run.completed_at = utcnow()
        run.duration_seconds = round(time.monotonic() - clock, 3)
        logger.info(
            "Smart nudge analysis completed: %d processed, %d errors, %d notifications",
            run.processed, run.errors, run.notifications_created,
        )

        try:
            await resolve(self._audit.log_run(run))
        except Exception:
            logger.exception("Failed to record nudge run summary %s", run.id)
        return run

    async def run_for_entity(self, entity_id: str, now: datetime | None = None) -> EntityResult:
        entity = await resolve(self._directory.get(entity_id))
        if entity is None:
            raise KeyError(f"Entity {entity_id!r} not found")
        return await self.process_entity(entity, now)

    async def process_entity(self, entity: Entity, now: datetime | None = None) -> EntityResult:
        now = now or utcnow()
        metrics = await self._snapshot(entity)
        pending = await self._engine.evaluate(entity, metrics, now)

        result = EntityResult(entity_id=entity.id)
        for item in pending:
            outcome = await self._queue.enqueue(item, now)
            if outcome.duplicate:
                result.duplicates += 1
                continue
            result.created += 1
            result.notification_ids.append(outcome.id)
            await self._log_trigger(item, outcome.id, now)
        return result

    async def _process_guarded(self, entity: Entity) -> EntityResult | None:
        timeout = self._config.entity_timeout_seconds
        try:
            return await asyncio.wait_for(self.process_entity(entity), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Nudge evaluation for entity %s timed out after %.1fs", entity.id, timeout)
        except Exception:
            logger.exception("Failed to process nudges for entity %s", entity.id)
        return None

    async def _snapshot(self, entity: Entity) -> MetricsSnapshot:
        try:
            return await resolve(self._metrics.get_snapshot(entity))
        except SnapshotUnavailable:
            raise
        except Exception as exc:
            raise SnapshotUnavailable(entity.id, str(exc)) from exc

    async def _log_trigger(self, item: PendingNotification, notification_id: str, now: datetime) -> None:
        entry = NudgeLogEntry(
            entity_id=item.entity_id,
            rule_id=item.rule_id or "",
            rule_name=item.rule_name or "",
            notification_id=notification_id,
            title=item.title,
            message=item.message,
            triggered_at=now,
        )
        try:
            await resolve(self._audit.log_trigger(entry))
        except Exception:
            logger.exception("Failed to log nudge trigger %s for entity %s", item.rule_id, item.entity_id)
