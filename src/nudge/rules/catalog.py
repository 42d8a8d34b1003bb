"""Built-in nudge rule catalog with optional YAML overrides.

The catalog is an immutable tuple built once at startup and injected into
the ``RuleEngine``. ``config/nudge_rules.yml`` may adjust ``enabled``,
``priority`` and ``cooldown_hours`` per rule id; conditions and messages
live in code.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any

import yaml

from nudge.core.types import Frequency, Priority
from nudge.entities.models import Entity
from nudge.metrics.models import MetricsSnapshot
from nudge.rules.models import RenderedMessage, Rule

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "nudge_rules.yml"

HOURS_PER_WEEK = 168
HOURS_PER_MONTH = 720


# --- Conditions and messages ---


def _seo_score_drop(entity: Entity, m: MetricsSnapshot) -> bool:
    return m.seo_score < 70 and m.seo_score_change < -5


def _seo_score_drop_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="SEO Score Alert",
        body=(
            f"Your SEO score dropped to {m.seo_score:g}/100. "
            "Take action to improve your search visibility."
        ),
        action_ref="/admin/seo",
        action_label="Improve SEO",
    )


def _traffic_spike(entity: Entity, m: MetricsSnapshot) -> bool:
    return m.traffic_change > 25 and m.unique_visitors > 50


def _traffic_spike_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Traffic is Trending!",
        body=(
            f"Your listing is getting {m.traffic_change:.1f}% more visitors! "
            "Keep up the momentum."
        ),
        action_ref="/admin/analytics",
        action_label="View Analytics",
    )


def _no_clicks(entity: Entity, m: MetricsSnapshot) -> bool:
    return m.total_clicks == 0 and m.profile_views > 20


def _no_clicks_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Boost Your Engagement",
        body=(
            f"{m.profile_views} people viewed your profile but no one clicked. "
            "Try updating your description or adding a compelling call-to-action."
        ),
        action_ref="/admin/profile",
        action_label="Update Profile",
    )


def _missing_phone(entity: Entity, m: MetricsSnapshot) -> bool:
    return not entity.phone or len(entity.phone) < 10


def _missing_phone_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Add Your Phone Number",
        body=(
            "Listings with phone numbers get 3x more calls. "
            "Add your contact information to boost engagement."
        ),
        action_ref="/admin/profile",
        action_label="Add Phone Number",
    )


def _incomplete_profile(entity: Entity, m: MetricsSnapshot) -> bool:
    return m.completion_score < 80


def _incomplete_profile_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Complete Your Profile",
        body=(
            f"Your profile is {m.completion_score:g}% complete. "
            "Complete profiles get 50% more visibility."
        ),
        action_ref="/admin/profile",
        action_label="Complete Profile",
    )


def _review_opportunity(entity: Entity, m: MetricsSnapshot) -> bool:
    return m.total_calls >= 5 and m.reviews_this_month == 0


def _review_opportunity_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Time to Collect Reviews",
        body=(
            f"You've received {m.total_calls} calls this month. "
            "Send review invites to boost your reputation."
        ),
        action_ref="/admin/reviews",
        action_label="Send Review Invites",
    )


def _upgrade_suggestion(entity: Entity, m: MetricsSnapshot) -> bool:
    return entity.package == "free" and m.profile_views > 100 and m.total_calls > 10


def _upgrade_suggestion_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Your Listing is Popular!",
        body=(
            f"{m.profile_views} profile views and {m.total_calls} calls this month. "
            "Upgrade to capture even more leads."
        ),
        action_ref="/admin/billing",
        action_label="View Upgrade Options",
    )


def _streak_encouragement(entity: Entity, m: MetricsSnapshot) -> bool:
    streak = entity.active_streak("profile_updates")
    return streak is not None and streak.count >= 3


def _streak_encouragement_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    streak = entity.active_streak("profile_updates")
    return RenderedMessage(
        title="You're on Fire!",
        body=(
            f"{streak.count} days of profile updates! "
            "Keep the momentum going to unlock special badges."
        ),
        action_ref="/admin/achievements",
        action_label="View Progress",
    )


def _content_freshness(entity: Entity, m: MetricsSnapshot) -> bool:
    return m.days_since_content_update > 30


def _content_freshness_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Refresh Your Content",
        body=(
            f"It's been {m.days_since_content_update} days since your last content update. "
            "Fresh content improves SEO rankings."
        ),
        action_ref="/admin/content",
        action_label="Update Content",
    )


def _competitor_alert(entity: Entity, m: MetricsSnapshot) -> bool:
    return m.market_rank is not None and m.market_rank > 5 and entity.package != "free"


def _competitor_alert_message(entity: Entity, m: MetricsSnapshot) -> RenderedMessage:
    return RenderedMessage(
        title="Competitive Opportunity",
        body=(
            f"You're ranked #{m.market_rank} in your market. "
            "Optimize your listing to climb higher."
        ),
        action_ref="/admin/seo",
        action_label="Improve Ranking",
    )


DEFAULT_RULES: tuple[Rule, ...] = (
    Rule(
        id="seo_score_drop",
        name="SEO Score Dropped",
        category="seo",
        priority=Priority.HIGH,
        frequency=Frequency.WEEKLY,
        condition=_seo_score_drop,
        render=_seo_score_drop_message,
        cooldown_hours=HOURS_PER_WEEK,
    ),
    Rule(
        id="traffic_spike",
        name="Traffic Spike Detected",
        category="milestone",
        priority=Priority.LOW,
        frequency=Frequency.ONCE,
        condition=_traffic_spike,
        render=_traffic_spike_message,
    ),
    Rule(
        id="no_clicks_warning",
        name="Low Engagement Warning",
        category="engagement",
        priority=Priority.MEDIUM,
        frequency=Frequency.WEEKLY,
        condition=_no_clicks,
        render=_no_clicks_message,
        cooldown_hours=72,
    ),
    Rule(
        id="missing_phone_number",
        name="Missing Contact Information",
        category="profile",
        priority=Priority.HIGH,
        frequency=Frequency.WEEKLY,
        condition=_missing_phone,
        render=_missing_phone_message,
        cooldown_hours=HOURS_PER_WEEK,
    ),
    Rule(
        id="incomplete_profile",
        name="Incomplete Profile Warning",
        category="profile",
        priority=Priority.MEDIUM,
        frequency=Frequency.WEEKLY,
        condition=_incomplete_profile,
        render=_incomplete_profile_message,
        cooldown_hours=HOURS_PER_WEEK,
    ),
    Rule(
        id="review_opportunity",
        name="Review Collection Opportunity",
        category="reviews",
        priority=Priority.MEDIUM,
        frequency=Frequency.MONTHLY,
        condition=_review_opportunity,
        render=_review_opportunity_message,
        cooldown_hours=HOURS_PER_MONTH,
    ),
    Rule(
        id="upgrade_suggestion",
        name="Upgrade Opportunity",
        category="upgrade",
        priority=Priority.LOW,
        frequency=Frequency.MONTHLY,
        condition=_upgrade_suggestion,
        render=_upgrade_suggestion_message,
        cooldown_hours=HOURS_PER_MONTH,
    ),
    Rule(
        id="streak_encouragement",
        name="Streak Encouragement",
        category="gamification",
        priority=Priority.LOW,
        frequency=Frequency.DAILY,
        condition=_streak_encouragement,
        render=_streak_encouragement_message,
    ),
    Rule(
        id="content_freshness",
        name="Content Update Reminder",
        category="content",
        priority=Priority.MEDIUM,
        frequency=Frequency.MONTHLY,
        condition=_content_freshness,
        render=_content_freshness_message,
        cooldown_hours=HOURS_PER_MONTH,
    ),
    Rule(
        id="competitor_alert",
        name="Competitive Analysis",
        category="competition",
        priority=Priority.MEDIUM,
        frequency=Frequency.WEEKLY,
        condition=_competitor_alert,
        render=_competitor_alert_message,
        cooldown_hours=HOURS_PER_WEEK,
    ),
)


def load_catalog(
    config_path: str | Path | None = None,
    rules: tuple[Rule, ...] = DEFAULT_RULES,
) -> tuple[Rule, ...]:
    """Return the rule catalog with any YAML overrides applied.

    A missing override file yields the built-in rules unchanged.
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    if not path.exists():
        return tuple(rules)

    with open(path) as fh:
        data = yaml.safe_load(fh) or {}

    overrides: dict[str, dict[str, Any]] = data.get("rules", {}) or {}
    known = {rule.id for rule in rules}
    for rule_id in overrides:
        if rule_id not in known:
            logger.warning("Ignoring override for unknown nudge rule %r in %s", rule_id, path)

    return tuple(_apply_override(rule, overrides.get(rule.id) or {}) for rule in rules)


def _apply_override(rule: Rule, override: dict[str, Any]) -> Rule:
    changes: dict[str, Any] = {}
    if "enabled" in override:
        changes["enabled"] = bool(override["enabled"])
    if "priority" in override:
        changes["priority"] = Priority(override["priority"])
    if "cooldown_hours" in override:
        hours = override["cooldown_hours"]
        changes["cooldown_hours"] = int(hours) if hours is not None else None
    return dataclasses.replace(rule, **changes) if changes else rule


def get_rule(rule_id: str, rules: tuple[Rule, ...] = DEFAULT_RULES) -> Rule | None:
    for rule in rules:
        if rule.id == rule_id:
            return rule
    return None
