"""In-memory store for nudge logs and run summaries."""

from __future__ import annotations

from nudge.audit.models import NudgeLogEntry, NudgeRun


class NudgeAuditStore:
    """Append-only in-memory audit trail."""

    def __init__(self) -> None:
        self._triggers: list[NudgeLogEntry] = []
        self._runs: list[NudgeRun] = []

    def log_trigger(self, entry: NudgeLogEntry) -> NudgeLogEntry:
        self._triggers.append(entry)
        return entry

    def log_run(self, run: NudgeRun) -> NudgeRun:
        self._runs.append(run)
        return run

    def list_triggers(self, entity_id: str | None = None) -> list[NudgeLogEntry]:
        if entity_id is None:
            return list(self._triggers)
        return [t for t in self._triggers if t.entity_id == entity_id]

    def list_runs(self, limit: int = 20) -> list[NudgeRun]:
        """Most recent runs first."""
        return sorted(self._runs, key=lambda r: r.completed_at, reverse=True)[:limit]
