"""Rule engine: evaluates the catalog for one entity and emits pending notifications.

Evaluation has no side effects beyond the returned list. Persistence, and
with it the cooldown record, happens downstream in the notification queue.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from nudge.core.errors import RuleEvaluationError
from nudge.core.types import utcnow
from nudge.entities.models import Entity
from nudge.metrics.models import MetricsSnapshot
from nudge.notifications.models import PendingNotification
from nudge.rules.cooldown import CooldownChecker
from nudge.rules.models import RenderedMessage, Rule

logger = logging.getLogger(__name__)


class RuleEngine:
    """Evaluates every enabled rule in catalog order.

    A rule whose condition or render step raises is logged and skipped;
    the rest of the catalog is still evaluated. Rules are independent:
    several may fire for the same entity in one run.

    Args:
        rules: The immutable rule catalog.
        cooldown: Cooldown checker over the notification repository.
    """

    def __init__(self, rules: Sequence[Rule], cooldown: CooldownChecker) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._cooldown = cooldown

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    async def evaluate(
        self,
        entity: Entity,
        metrics: MetricsSnapshot,
        now: datetime | None = None,
    ) -> list[PendingNotification]:
        now = now or utcnow()
        pending: list[PendingNotification] = []

        for rule in self._rules:
            if not rule.enabled:
                continue
            try:
                if not self._check(rule, entity, metrics):
                    continue
                eligible = await self._cooldown.is_eligible(
                    entity.id, rule.category, rule.cooldown_hours, now
                )
                if not eligible:
                    logger.info("Nudge rule %s in cooldown for entity %s", rule.id, entity.id)
                    continue
                message = self._render(rule, entity, metrics)
            except RuleEvaluationError as exc:
                logger.exception("%s", exc)
                continue

            logger.info("Nudge rule %s triggered for entity %s", rule.id, entity.id)
            pending.append(self._to_pending(rule, entity, metrics, message))

        logger.info(
            "Nudge analysis complete for entity %s: %d nudges triggered",
            entity.id, len(pending),
        )
        return pending

    @staticmethod
    def _check(rule: Rule, entity: Entity, metrics: MetricsSnapshot) -> bool:
        try:
            return bool(rule.condition(entity, metrics))
        except Exception as exc:
            raise RuleEvaluationError(rule.id, entity.id, "condition") from exc

    @staticmethod
    def _render(rule: Rule, entity: Entity, metrics: MetricsSnapshot) -> RenderedMessage:
        try:
            return rule.render(entity, metrics)
        except Exception as exc:
            raise RuleEvaluationError(rule.id, entity.id, "render") from exc

    @staticmethod
    def _to_pending(
        rule: Rule,
        entity: Entity,
        metrics: MetricsSnapshot,
        message: RenderedMessage,
    ) -> PendingNotification:
        return PendingNotification(
            entity_id=entity.id,
            type=rule.notification_type,
            priority=rule.priority,
            title=message.title,
            message=message.body,
            action_ref=message.action_ref,
            action_label=message.action_label,
            category=rule.category,
            tags={rule.id},
            rule_id=rule.id,
            rule_name=rule.name,
            data={
                "rule_id": rule.id,
                "metrics": {
                    "seo_score": metrics.seo_score,
                    "completion_score": metrics.completion_score,
                    "profile_views": metrics.profile_views,
                    "total_calls": metrics.total_calls,
                },
            },
        )
