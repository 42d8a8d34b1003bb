"""Entity (business account) data models consumed from the entity directory."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class EntityStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Streak(BaseModel):
    """An activity streak tracked for an entity (e.g. consecutive profile updates)."""

    type: str
    count: int = 0
    active: bool = False
    name: str = ""


class SeoMeta(BaseModel):
    title: str | None = None
    description: str | None = None
    keywords: list[str] = Field(default_factory=list)


class Entity(BaseModel):
    """A business account evaluated by the rule engine.

    ``admin_ref`` is an opaque deep-link reference owned by the front end;
    the engine passes it through untouched.
    """

    id: str
    name: str = ""
    status: EntityStatus = EntityStatus.ACTIVE
    phone: str | None = None
    package: str = "free"
    address: str | None = None
    website: str | None = None
    services: list[str] = Field(default_factory=list)
    seo_meta: SeoMeta | None = None
    has_seo_content: bool = False
    rating: float | None = None
    content_updated_at: datetime | None = None
    streaks: list[Streak] = Field(default_factory=list)
    admin_ref: str | None = None

    def active_streak(self, streak_type: str) -> Streak | None:
        for streak in self.streaks:
            if streak.type == streak_type and streak.active:
                return streak
        return None
