"""Rule value objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from pydantic import BaseModel

from nudge.core.types import Frequency, NotificationType, Priority
from nudge.entities.models import Entity
from nudge.metrics.models import MetricsSnapshot

# Category -> notification type; anything unlisted is a reminder
CATEGORY_TYPES: dict[str, NotificationType] = {
    "seo": NotificationType.SEO_ISSUE,
    "milestone": NotificationType.MILESTONE,
    "gamification": NotificationType.ACHIEVEMENT,
    "upgrade": NotificationType.TIP,
    "warning": NotificationType.WARNING,
    "engagement": NotificationType.REMINDER,
    "profile": NotificationType.REMINDER,
    "content": NotificationType.REMINDER,
    "reviews": NotificationType.REMINDER,
    "competition": NotificationType.REMINDER,
}


def notification_type_for(category: str) -> NotificationType:
    return CATEGORY_TYPES.get(category, NotificationType.REMINDER)


class RenderedMessage(BaseModel):
    title: str
    body: str
    action_ref: str | None = None
    action_label: str | None = None


Condition = Callable[[Entity, MetricsSnapshot], bool]
Renderer = Callable[[Entity, MetricsSnapshot], RenderedMessage]


@dataclass(frozen=True)
class Rule:
    """A declarative nudge: when ``condition`` holds, ``render`` the message.

    ``cooldown_hours`` of None means the rule is always eligible; the
    cooldown applies per (entity, category), not per rule.
    """

    id: str
    name: str
    category: str
    priority: Priority
    frequency: Frequency
    condition: Condition
    render: Renderer
    cooldown_hours: int | None = None
    enabled: bool = True

    @property
    def notification_type(self) -> NotificationType:
        return notification_type_for(self.category)
