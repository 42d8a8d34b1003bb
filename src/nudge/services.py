"""Wires stores, queue, rule engine and runner from settings.

In-memory stores are used unless ``settings.db.database_url`` is set, in
which case the SQL repositories share one ``DatabaseManager``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from nudge.audit.store import NudgeAuditStore
from nudge.core.config import Settings
from nudge.db.engine import DatabaseManager
from nudge.entities.directory import InMemoryEntityDirectory
from nudge.metrics.provider import ActivityMetricsProvider
from nudge.notifications.dispatcher import Dispatcher, Transport, create_transport
from nudge.notifications.queue import NotificationQueue
from nudge.notifications.store import EngagementStore, NotificationStore
from nudge.orchestrator.runner import NudgeRunner
from nudge.orchestrator.scheduler import JobScheduler, build_scheduler
from nudge.rules.catalog import load_catalog
from nudge.rules.cooldown import CooldownChecker
from nudge.rules.engine import RuleEngine
from nudge.rules.models import Rule

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    notification_store: Any
    engagement_store: Any
    audit_store: Any
    directory: Any
    metrics_provider: Any
    transport: Transport
    queue: NotificationQueue
    engine: RuleEngine
    runner: NudgeRunner
    scheduler: JobScheduler
    db_manager: DatabaseManager | None = None

    @property
    def storage(self) -> str:
        return "sql" if self.db_manager is not None else "memory"

    async def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()
        if self.db_manager is not None:
            await self.db_manager.close()


def build_services(
    settings: Settings | None = None,
    directory: Any = None,
    metrics_provider: Any = None,
    transport: Transport | None = None,
    rules: tuple[Rule, ...] | None = None,
) -> Services:
    """Build the full service graph.

    Args:
        settings: Application settings. Defaults to Settings().
        directory: Entity directory. Defaults to an empty in-memory one.
        metrics_provider: Snapshot provider. Defaults to ActivityMetricsProvider.
        transport: Delivery transport. Defaults to the configured one.
        rules: Rule catalog. Defaults to the built-in rules with YAML overrides.
    """
    if settings is None:
        settings = Settings()

    db_manager: DatabaseManager | None = None
    if settings.db.database_url:
        from nudge.repositories.postgres.audit import PostgresNudgeAuditRepository
        from nudge.repositories.postgres.notifications import (
            PostgresEngagementRepository,
            PostgresNotificationRepository,
        )

        db_manager = DatabaseManager.from_config(settings.db)
        notification_store: Any = PostgresNotificationRepository(db_manager)
        engagement_store: Any = PostgresEngagementRepository(db_manager)
        audit_store: Any = PostgresNudgeAuditRepository(db_manager)
        logger.info("Using SQL repositories")
    else:
        notification_store = NotificationStore()
        engagement_store = EngagementStore()
        audit_store = NudgeAuditStore()
        logger.info("Using in-memory stores")

    if directory is None:
        directory = InMemoryEntityDirectory()
    if metrics_provider is None:
        metrics_provider = ActivityMetricsProvider()
    if transport is None:
        transport = create_transport(settings.delivery)
    if rules is None:
        rules = load_catalog(settings.runner.rules_path)

    dispatcher = Dispatcher(transport, engagement_store)
    queue = NotificationQueue(notification_store, dispatcher, settings.notification)
    engine = RuleEngine(rules, CooldownChecker(notification_store))
    runner = NudgeRunner(
        directory,
        metrics_provider,
        engine,
        queue,
        audit_store,
        config=settings.runner,
    )
    scheduler = build_scheduler(runner, queue, settings.scheduler)

    return Services(
        settings=settings,
        notification_store=notification_store,
        engagement_store=engagement_store,
        audit_store=audit_store,
        directory=directory,
        metrics_provider=metrics_provider,
        transport=transport,
        queue=queue,
        engine=engine,
        runner=runner,
        scheduler=scheduler,
        db_manager=db_manager,
    )
