"""Ready-made notifications for ad-hoc enqueue outside the rule catalog."""

from __future__ import annotations

from nudge.core.types import NotificationType, Priority
from nudge.notifications.models import PendingNotification


def seo_issue(entity_id: str, issue: str, score: float) -> PendingNotification:
    return PendingNotification(
        entity_id=entity_id,
        type=NotificationType.SEO_ISSUE,
        priority=Priority.MEDIUM,
        title="SEO Issue Detected",
        message=f"Your SEO score dropped to {score:g}/100. {issue}",
        category="seo",
        action_ref="/admin/seo",
        action_label="Fix SEO Issues",
    )


def achievement(entity_id: str, name: str, description: str) -> PendingNotification:
    return PendingNotification(
        entity_id=entity_id,
        type=NotificationType.ACHIEVEMENT,
        priority=Priority.LOW,
        title=f"Achievement Unlocked: {name}",
        message=description,
        category="gamification",
        action_ref="/admin/achievements",
        action_label="View Achievements",
    )


def reminder(entity_id: str, task: str, urgency: Priority = Priority.MEDIUM) -> PendingNotification:
    return PendingNotification(
        entity_id=entity_id,
        type=NotificationType.REMINDER,
        priority=urgency,
        title="Action Needed",
        message=task,
        category="reminder",
        action_ref="/admin/dashboard",
        action_label="Take Action",
    )


def milestone(entity_id: str, name: str, value: str) -> PendingNotification:
    return PendingNotification(
        entity_id=entity_id,
        type=NotificationType.MILESTONE,
        priority=Priority.MEDIUM,
        title="Milestone Reached!",
        message=f"{name}: {value}",
        category="milestone",
        action_ref="/admin/analytics",
        action_label="View Analytics",
    )
