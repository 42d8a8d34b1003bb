"""FastAPI router for the entity-facing notification inbox."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from nudge.core.errors import InvalidTransition, NotificationNotFound, StoreUnavailable
from nudge.notifications.models import MutationResult, Notification
from nudge.notifications.queue import NotificationQueue

router = APIRouter()


class EntityRequest(BaseModel):
    entity_id: str


def _queue(request: Request) -> NotificationQueue:
    queue = getattr(request.app.state, "notification_queue", None)
    if queue is None:
        raise HTTPException(status_code=503, detail="Notification queue not available")
    return queue


def _serialize(notification: Notification) -> dict[str, Any]:
    data = notification.model_dump(mode="json")
    data["tags"] = sorted(notification.tags)
    data["state"] = notification.state.value
    return data


@router.get("/api/entities/{entity_id}/notifications")
async def list_notifications(
    entity_id: str,
    request: Request,
    limit: int | None = Query(default=None, ge=1, le=200),
    unread_only: bool = False,
    category: str | None = None,
    include_expired: bool = False,
) -> list[dict[str, Any]]:
    """List an entity's notifications, newest first."""
    queue = _queue(request)
    try:
        notifications = await queue.get_for_entity(
            entity_id,
            limit=limit,
            unread_only=unread_only,
            category=category,
            include_expired=include_expired,
        )
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return [_serialize(n) for n in notifications]


@router.get("/api/entities/{entity_id}/notifications/stats")
async def notification_stats(
    entity_id: str,
    request: Request,
    days: int = Query(default=30, ge=1, le=365),
) -> dict[str, Any]:
    queue = _queue(request)
    try:
        stats = await queue.stats(entity_id, days=days)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return stats.model_dump()


@router.post("/api/notifications/{notification_id}/read")
async def mark_read(notification_id: str, body: EntityRequest, request: Request) -> dict[str, Any]:
    queue = _queue(request)
    return await _mutate(queue.mark_read, notification_id, body.entity_id)


@router.post("/api/notifications/{notification_id}/dismiss")
async def dismiss(notification_id: str, body: EntityRequest, request: Request) -> dict[str, Any]:
    queue = _queue(request)
    return await _mutate(queue.dismiss, notification_id, body.entity_id)


@router.post("/api/notifications/{notification_id}/click")
async def record_click(notification_id: str, body: EntityRequest, request: Request) -> dict[str, Any]:
    """Record that the owner followed the notification's action link."""
    queue = _queue(request)
    return await _mutate(queue.record_click, notification_id, body.entity_id)


async def _mutate(operation: Any, notification_id: str, entity_id: str) -> dict[str, Any]:
    try:
        result: MutationResult = await operation(notification_id, entity_id)
    except NotificationNotFound:
        raise HTTPException(status_code=404, detail=f"Notification {notification_id!r} not found")
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return result.model_dump()
