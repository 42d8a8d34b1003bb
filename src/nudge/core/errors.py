"""Error taxonomy for the nudge engine.

Duplicate suppression is deliberately absent: it is a normal enqueue
outcome reported through ``EnqueueResult.duplicate``.
"""

from __future__ import annotations


class NudgeError(Exception):
    """Base class for all engine errors."""


class SnapshotUnavailable(NudgeError):
    """Metrics could not be computed for an entity."""

    def __init__(self, entity_id: str, reason: str = "") -> None:
        self.entity_id = entity_id
        self.reason = reason
        message = f"Metrics snapshot unavailable for entity {entity_id!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RuleEvaluationError(NudgeError):
    """A single rule's condition or render step raised."""

    def __init__(self, rule_id: str, entity_id: str, stage: str) -> None:
        self.rule_id = rule_id
        self.entity_id = entity_id
        self.stage = stage
        super().__init__(f"Rule {rule_id!r} failed during {stage} for entity {entity_id!r}")


class DeliveryFailure(NudgeError):
    """Transport-level failure handing a notification to its provider."""


class StoreUnavailable(NudgeError):
    """The persistence layer rejected or could not serve an operation."""


class NotificationNotFound(NudgeError, KeyError):
    """No notification with the given id belongs to the given entity."""

    def __init__(self, notification_id: str, entity_id: str | None = None) -> None:
        self.notification_id = notification_id
        self.entity_id = entity_id
        super().__init__(f"Notification {notification_id!r} not found")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransition(NudgeError, ValueError):
    """A lifecycle mutation is not allowed from the notification's current state."""
