"""Entity directory Protocol and in-memory implementation."""

from __future__ import annotations

from typing import Awaitable, Protocol, runtime_checkable

from nudge.entities.models import Entity, EntityStatus


@runtime_checkable
class EntityDirectory(Protocol):
    """Protocol for the external directory of entities.

    Implementations may be sync or async; callers go through
    ``nudge.repositories.resolve``.
    """

    def list_active(self) -> list[Entity] | Awaitable[list[Entity]]: ...

    def get(self, entity_id: str) -> Entity | None | Awaitable[Entity | None]: ...


class InMemoryEntityDirectory:
    """In-memory entity directory."""

    def __init__(self, entities: list[Entity] | None = None) -> None:
        self._entities: dict[str, Entity] = {}
        for entity in entities or []:
            self.add(entity)

    def add(self, entity: Entity) -> Entity:
        self._entities[entity.id] = entity
        return entity

    def get(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def list_active(self) -> list[Entity]:
        return [e for e in self._entities.values() if e.status == EntityStatus.ACTIVE]

    @property
    def count(self) -> int:
        return len(self._entities)
