"""PostgreSQL repository for nudge logs and run summaries."""

from __future__ import annotations

from sqlalchemy import select

from nudge.audit.models import NudgeLogEntry, NudgeRun
from nudge.core.types import ensure_utc
from nudge.db.engine import DatabaseManager
from nudge.db.models import NudgeLogRow, NudgeRunRow
from nudge.repositories.postgres import store_errors


class PostgresNudgeAuditRepository:
    """Postgres-backed append-only nudge audit trail."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def log_trigger(self, entry: NudgeLogEntry) -> NudgeLogEntry:
        with store_errors("log nudge trigger"):
            async with self._db.session() as db:
                db.add(NudgeLogRow(**entry.model_dump()))
                await db.commit()
        return entry

    async def log_run(self, run: NudgeRun) -> NudgeRun:
        with store_errors("log nudge run"):
            async with self._db.session() as db:
                db.add(NudgeRunRow(**run.model_dump()))
                await db.commit()
        return run

    async def list_triggers(self, entity_id: str | None = None) -> list[NudgeLogEntry]:
        stmt = select(NudgeLogRow).order_by(NudgeLogRow.triggered_at.asc())
        if entity_id is not None:
            stmt = stmt.where(NudgeLogRow.entity_id == entity_id)
        with store_errors("list nudge triggers"):
            async with self._db.session() as db:
                result = await db.execute(stmt)
                return [
                    NudgeLogEntry(
                        id=r.id,
                        entity_id=r.entity_id,
                        rule_id=r.rule_id,
                        rule_name=r.rule_name,
                        notification_id=r.notification_id,
                        title=r.title,
                        message=r.message,
                        triggered_at=ensure_utc(r.triggered_at),
                    )
                    for r in result.scalars().all()
                ]

    async def list_runs(self, limit: int = 20) -> list[NudgeRun]:
        with store_errors("list nudge runs"):
            async with self._db.session() as db:
                result = await db.execute(
                    select(NudgeRunRow).order_by(NudgeRunRow.completed_at.desc()).limit(limit)
                )
                return [
                    NudgeRun(
                        id=r.id,
                        job_type=r.job_type,
                        total_entities=r.total_entities,
                        processed=r.processed,
                        errors=r.errors,
                        notifications_created=r.notifications_created,
                        duplicates_suppressed=r.duplicates_suppressed,
                        duration_seconds=r.duration_seconds,
                        failed_entities=list(r.failed_entities or []),
                        started_at=ensure_utc(r.started_at),
                        completed_at=ensure_utc(r.completed_at),
                    )
                    for r in result.scalars().all()
                ]
