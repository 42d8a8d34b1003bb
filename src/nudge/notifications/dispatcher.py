"""Delivery dispatcher and transport implementations.

The dispatcher hands a notification to a transport and records the
attempt as a ``sent`` engagement event. It never raises: a transport
failure is logged and returned as an unsuccessful ``DeliveryResult`` so
that sibling deliveries and the persisted record are unaffected.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Protocol, runtime_checkable

import httpx

from nudge.core.config import DeliveryConfig
from nudge.core.errors import DeliveryFailure
from nudge.core.types import utcnow
from nudge.notifications.models import (
    DeliveryResult,
    EngagementAction,
    EngagementEvent,
    Notification,
)
from nudge.notifications.store import EngagementStore
from nudge.repositories import resolve

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Protocol for push/email/SMS delivery providers."""

    @property
    def name(self) -> str: ...

    def deliver(self, notification: Notification) -> None | Awaitable[None]: ...


class LoggingTransport:
    """Placeholder transport that logs and remembers what it delivered."""

    def __init__(self) -> None:
        self.delivered: list[Notification] = []

    @property
    def name(self) -> str:
        return "log"

    def deliver(self, notification: Notification) -> None:
        logger.info(
            "Delivering notification %s to entity %s: %s",
            notification.id, notification.entity_id, notification.title,
        )
        self.delivered.append(notification)


class WebhookTransport:
    """POSTs the notification as JSON to a configured webhook URL."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._http = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    @property
    def name(self) -> str:
        return "webhook"

    async def deliver(self, notification: Notification) -> None:
        payload = notification.model_dump(mode="json")
        try:
            resp = await self._http.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            raise DeliveryFailure(f"Webhook request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise DeliveryFailure(f"Webhook returned {resp.status_code}")

    async def close(self) -> None:
        await self._http.aclose()


def create_transport(config: DeliveryConfig) -> Transport:
    """Build the transport named in configuration."""
    if config.transport == "webhook":
        if not config.webhook_url:
            raise ValueError("webhook transport requires NUDGE_DELIVERY_WEBHOOK_URL")
        return WebhookTransport(config.webhook_url, timeout_seconds=config.timeout_seconds)
    if config.transport == "log":
        return LoggingTransport()
    raise ValueError(f"Unknown delivery transport: {config.transport!r}")


class Dispatcher:
    """Best-effort delivery with engagement tracking.

    Args:
        transport: The delivery provider.
        engagement: Store (in-memory or Postgres) receiving engagement events.
    """

    def __init__(self, transport: Transport, engagement: Any = None) -> None:
        self._transport = transport
        self._engagement = engagement if engagement is not None else EngagementStore()

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def engagement(self) -> Any:
        return self._engagement

    async def dispatch(
        self, notification: Notification, now: datetime | None = None
    ) -> DeliveryResult:
        result = DeliveryResult(
            notification_id=notification.id,
            success=True,
            transport=self._transport.name,
        )
        try:
            await resolve(self._transport.deliver(notification))
        except Exception as exc:
            logger.exception(
                "Delivery of notification %s to entity %s failed",
                notification.id, notification.entity_id,
            )
            result.success = False
            result.error = str(exc) or type(exc).__name__

        details: dict[str, Any] = {"transport": result.transport}
        if result.error:
            details["error"] = result.error
        await self.track(notification, EngagementAction.SENT, details=details, at=now)
        return result

    async def track(
        self,
        notification: Notification,
        action: EngagementAction,
        details: dict[str, Any] | None = None,
        at: datetime | None = None,
    ) -> None:
        """Append an engagement event; failures are logged, never raised."""
        event = EngagementEvent(
            notification_id=notification.id,
            entity_id=notification.entity_id,
            action=action,
            timestamp=at or utcnow(),
            details=details or {},
        )
        try:
            await resolve(self._engagement.add(event))
        except Exception:
            logger.exception(
                "Failed to track %s engagement for notification %s", action, notification.id
            )
