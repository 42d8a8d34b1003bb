"""Append-only audit records for rule firings and orchestrator runs."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from nudge.core.types import utcnow


class NudgeLogEntry(BaseModel):
    """One rule firing that produced a stored notification."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    entity_id: str
    rule_id: str
    rule_name: str = ""
    notification_id: str
    title: str = ""
    message: str = ""
    triggered_at: datetime = Field(default_factory=utcnow)


class NudgeRun(BaseModel):
    """Summary of one pass of the batch orchestrator."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_type: str = "smart_nudge_analysis"
    total_entities: int = 0
    processed: int = 0
    errors: int = 0
    notifications_created: int = 0
    duplicates_suppressed: int = 0
    duration_seconds: float = 0.0
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime = Field(default_factory=utcnow)
    failed_entities: list[str] = Field(default_factory=list)
