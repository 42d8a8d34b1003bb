"""Category cooldown checks backed by the notification repository."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from nudge.repositories import resolve


class CooldownChecker:
    """Answers "was this category triggered for this entity in the last N hours?".

    Cooldowns are not stored separately: a category is cooling down while
    any notification of that category for the entity was created inside
    the window, whatever its read or dismiss state.
    """

    def __init__(self, store: Any) -> None:
        self._store = store

    async def is_eligible(
        self,
        entity_id: str,
        category: str,
        cooldown_hours: int | None,
        now: datetime,
    ) -> bool:
        if not cooldown_hours:
            return True
        since = now - timedelta(hours=cooldown_hours)
        recent = await resolve(self._store.has_recent_in_category(entity_id, category, since))
        return not recent
