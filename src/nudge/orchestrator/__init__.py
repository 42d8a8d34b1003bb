"""Batch nudge runner and periodic job scheduler."""

from nudge.orchestrator.runner import NudgeRunner
from nudge.orchestrator.scheduler import JobScheduler, build_scheduler

__all__ = ["JobScheduler", "NudgeRunner", "build_scheduler"]
