"""Tests for the rule catalog, cooldown checker and rule engine."""

from __future__ import annotations

import dataclasses
import logging
from datetime import timedelta

import pytest

from nudge.core.types import Frequency, NotificationType, Priority
from nudge.notifications.dispatcher import Dispatcher, LoggingTransport
from nudge.notifications.queue import NotificationQueue
from nudge.notifications.store import NotificationStore
from nudge.rules.catalog import DEFAULT_RULES, get_rule, load_catalog
from nudge.rules.cooldown import CooldownChecker
from nudge.rules.engine import RuleEngine
from nudge.rules.models import RenderedMessage, Rule, notification_type_for
from tests.conftest import NOW, make_entity, quiet_snapshot, sent_notification


def _exploding(entity, metrics):
    raise ZeroDivisionError("bad threshold")


def _always(entity, metrics):
    return True


def _hello(entity, metrics):
    return RenderedMessage(title=f"Hello {entity.name}", body="Hi")


class TestCatalog:
    def test_ten_rules_with_unique_ids(self) -> None:
        ids = [rule.id for rule in DEFAULT_RULES]
        assert len(ids) == 10
        assert len(set(ids)) == 10

    def test_cooldowns(self) -> None:
        assert get_rule("seo_score_drop").cooldown_hours == 168
        assert get_rule("no_clicks_warning").cooldown_hours == 72
        assert get_rule("review_opportunity").cooldown_hours == 720
        assert get_rule("traffic_spike").cooldown_hours is None
        assert get_rule("streak_encouragement").cooldown_hours is None

    def test_category_type_mapping(self) -> None:
        assert get_rule("seo_score_drop").notification_type == NotificationType.SEO_ISSUE
        assert get_rule("traffic_spike").notification_type == NotificationType.MILESTONE
        assert get_rule("streak_encouragement").notification_type == NotificationType.ACHIEVEMENT
        assert get_rule("upgrade_suggestion").notification_type == NotificationType.TIP
        assert notification_type_for("something-else") == NotificationType.REMINDER

    def test_get_unknown_rule(self) -> None:
        assert get_rule("nope") is None

    def test_rules_are_immutable(self) -> None:
        rule = get_rule("seo_score_drop")
        with pytest.raises(dataclasses.FrozenInstanceError):
            rule.enabled = False  # type: ignore[misc]


class TestCatalogOverrides:
    def test_missing_file_keeps_defaults(self, tmp_path) -> None:
        rules = load_catalog(tmp_path / "absent.yml")
        assert rules == DEFAULT_RULES

    def test_overrides_applied(self, tmp_path, caplog) -> None:
        path = tmp_path / "rules.yml"
        path.write_text(
            "rules:\n"
            "  seo_score_drop:\n"
            "    enabled: false\n"
            "  no_clicks_warning:\n"
            "    priority: high\n"
            "    cooldown_hours: 12\n"
            "  traffic_spike:\n"
            "    cooldown_hours: 24\n"
            "  not_a_rule:\n"
            "    enabled: false\n"
        )
        with caplog.at_level(logging.WARNING):
            rules = load_catalog(path)

        by_id = {rule.id: rule for rule in rules}
        assert not by_id["seo_score_drop"].enabled
        assert by_id["no_clicks_warning"].priority == Priority.HIGH
        assert by_id["no_clicks_warning"].cooldown_hours == 12
        assert by_id["traffic_spike"].cooldown_hours == 24
        assert by_id["incomplete_profile"] == get_rule("incomplete_profile")
        assert [r.id for r in rules] == [r.id for r in DEFAULT_RULES]
        assert "not_a_rule" in caplog.text


class TestCooldownChecker:
    def setup_method(self) -> None:
        self.store = NotificationStore()
        self.checker = CooldownChecker(self.store)

    async def test_no_cooldown_always_eligible(self) -> None:
        self.store.save(sent_notification(category="milestone"))
        assert await self.checker.is_eligible("clinic-1", "milestone", None, NOW)

    async def test_recent_category_blocks(self) -> None:
        self.store.save(sent_notification(category="engagement"))
        assert not await self.checker.is_eligible("clinic-1", "engagement", 72, NOW + timedelta(hours=71))
        assert await self.checker.is_eligible("clinic-1", "engagement", 72, NOW + timedelta(hours=73))

    async def test_dismissed_still_counts(self) -> None:
        self.store.save(sent_notification(category="seo", dismissed=True, dismissed_at=NOW))
        assert not await self.checker.is_eligible("clinic-1", "seo", 168, NOW + timedelta(days=1))


class TestRuleEngine:
    def setup_method(self) -> None:
        self.store = NotificationStore()
        self.engine = RuleEngine(DEFAULT_RULES, CooldownChecker(self.store))
        self.queue = NotificationQueue(self.store, Dispatcher(LoggingTransport()))
        self.entity = make_entity()

    async def test_quiet_snapshot_fires_nothing(self) -> None:
        assert await self.engine.evaluate(self.entity, quiet_snapshot(), NOW) == []

    async def test_seo_score_drop(self) -> None:
        metrics = quiet_snapshot(seo_score=65, seo_score_change=-8)
        pending = await self.engine.evaluate(self.entity, metrics, NOW)
        assert len(pending) == 1
        item = pending[0]
        assert item.category == "seo"
        assert item.priority == Priority.HIGH
        assert "SEO Score Alert" in item.title
        assert item.type == NotificationType.SEO_ISSUE
        assert item.rule_id == "seo_score_drop"
        assert item.tags == {"seo_score_drop"}
        assert item.data["metrics"]["seo_score"] == 65

    async def test_seo_threshold_is_strict(self) -> None:
        metrics = quiet_snapshot(seo_score=70, seo_score_change=-8)
        assert await self.engine.evaluate(self.entity, metrics, NOW) == []

    async def test_no_clicks_warning(self) -> None:
        metrics = quiet_snapshot(total_clicks=0, profile_views=25)
        pending = await self.engine.evaluate(self.entity, metrics, NOW)
        assert [p.rule_id for p in pending] == ["no_clicks_warning"]
        assert pending[0].priority == Priority.MEDIUM

    async def test_no_clicks_fires_once_within_cooldown(self) -> None:
        metrics = quiet_snapshot(total_clicks=0, profile_views=25)
        created = 0
        for offset in (timedelta(0), timedelta(hours=48)):
            for item in await self.engine.evaluate(self.entity, metrics, NOW + offset):
                result = await self.queue.enqueue(item, NOW + offset)
                created += not result.duplicate
        assert created == 1

        later = await self.engine.evaluate(self.entity, metrics, NOW + timedelta(hours=73))
        assert [p.rule_id for p in later] == ["no_clicks_warning"]

    async def test_rules_sharing_a_category_fire_together_then_cool_down(self) -> None:
        entity = make_entity(phone=None)
        metrics = quiet_snapshot(completion_score=57)
        pending = await self.engine.evaluate(entity, metrics, NOW)
        assert {p.rule_id for p in pending} == {"missing_phone_number", "incomplete_profile"}
        for item in pending:
            await self.queue.enqueue(item, NOW)
        assert await self.engine.evaluate(entity, metrics, NOW + timedelta(days=1)) == []

    async def test_rule_without_cooldown_is_limited_by_dedup(self) -> None:
        metrics = quiet_snapshot(traffic_change=40, unique_visitors=80)
        first = await self.engine.evaluate(self.entity, metrics, NOW)
        assert (await self.queue.enqueue(first[0], NOW)).duplicate is False
        again = await self.engine.evaluate(self.entity, metrics, NOW + timedelta(hours=1))
        assert [p.rule_id for p in again] == ["traffic_spike"]
        assert (await self.queue.enqueue(again[0], NOW + timedelta(hours=1))).duplicate

    async def test_streak_and_competition_rules(self) -> None:
        entity = make_entity(
            package="premium",
            streaks=[{"type": "profile_updates", "count": 4, "active": True}],
        )
        metrics = quiet_snapshot(market_rank=9)
        pending = await self.engine.evaluate(entity, metrics, NOW)
        assert {p.rule_id for p in pending} == {"streak_encouragement", "competitor_alert"}
        streak = next(p for p in pending if p.rule_id == "streak_encouragement")
        assert streak.message.startswith("4 days")

    async def test_failing_rule_is_contained(self, caplog) -> None:
        rules = (
            Rule(id="broken", name="Broken", category="tips", priority=Priority.LOW,
                 frequency=Frequency.DAILY, condition=_exploding, render=_hello),
            Rule(id="hello", name="Hello", category="tips", priority=Priority.LOW,
                 frequency=Frequency.DAILY, condition=_always, render=_hello),
        )
        engine = RuleEngine(rules, CooldownChecker(self.store))
        with caplog.at_level(logging.ERROR):
            pending = await engine.evaluate(self.entity, quiet_snapshot(), NOW)
        assert [p.rule_id for p in pending] == ["hello"]
        assert pending[0].title == "Hello Riverside Clinic"
        assert "broken" in caplog.text
        assert any(r.exc_info for r in caplog.records if "broken" in r.getMessage())

    async def test_failing_render_is_contained(self) -> None:
        rules = (
            Rule(id="bad_render", name="Bad", category="tips", priority=Priority.LOW,
                 frequency=Frequency.DAILY, condition=_always, render=_exploding),
        )
        engine = RuleEngine(rules, CooldownChecker(self.store))
        assert await engine.evaluate(self.entity, quiet_snapshot(), NOW) == []

    async def test_disabled_rule_skipped(self) -> None:
        rules = (
            Rule(id="hello", name="Hello", category="tips", priority=Priority.LOW,
                 frequency=Frequency.DAILY, condition=_always, render=_hello, enabled=False),
        )
        engine = RuleEngine(rules, CooldownChecker(self.store))
        assert await engine.evaluate(self.entity, quiet_snapshot(), NOW) == []

    async def test_evaluation_has_no_side_effects(self) -> None:
        metrics = quiet_snapshot(seo_score=65, seo_score_change=-8)
        await self.engine.evaluate(self.entity, metrics, NOW)
        assert self.store.count == 0
