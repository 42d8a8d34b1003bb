"""Operator endpoints: trigger nudge runs, scheduled sweeps and cleanup."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from nudge.core.errors import SnapshotUnavailable, StoreUnavailable
from nudge.repositories import resolve

router = APIRouter(prefix="/api/ops")


def _state(request: Request, name: str, label: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{label} not available")
    return value


@router.post("/nudges/run")
async def run_nudges(request: Request) -> dict[str, Any]:
    """Run nudge evaluation for every active entity and return the run summary."""
    runner = _state(request, "nudge_runner", "Nudge runner")
    try:
        run = await runner.run_for_all_entities()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return run.model_dump(mode="json")


@router.post("/nudges/run/{entity_id}")
async def run_nudges_for_entity(entity_id: str, request: Request) -> dict[str, Any]:
    runner = _state(request, "nudge_runner", "Nudge runner")
    try:
        result = await runner.run_for_entity(entity_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Entity {entity_id!r} not found")
    except SnapshotUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return result.model_dump()


@router.get("/nudges/runs")
async def list_runs(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
) -> list[dict[str, Any]]:
    audit = _state(request, "audit_store", "Audit store")
    runs = await resolve(audit.list_runs(limit=limit))
    return [r.model_dump(mode="json") for r in runs]


@router.post("/notifications/process-scheduled")
async def process_scheduled(request: Request) -> dict[str, int]:
    queue = _state(request, "notification_queue", "Notification queue")
    try:
        processed = await queue.process_scheduled()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return {"processed": processed}


@router.post("/notifications/cleanup")
async def cleanup(request: Request) -> dict[str, int]:
    queue = _state(request, "notification_queue", "Notification queue")
    try:
        deleted = await queue.cleanup_expired()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return {"deleted": deleted}
