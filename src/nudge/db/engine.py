"""Async database engine and session management."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from nudge.core.config import DatabaseConfig


class DatabaseManager:
    """Owns the async engine and hands out sessions.

    SQLite URLs (used by the test-suite) skip the connection pool options;
    in-memory SQLite shares one connection through ``StaticPool`` so every
    session sees the same database.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 5,
    ) -> None:
        self._url = database_url
        kwargs: dict[str, Any] = {"echo": echo}
        if database_url.startswith("sqlite"):
            if ":memory:" in database_url:
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_size"] = pool_size
            kwargs["pool_pre_ping"] = True
        self._engine: AsyncEngine = create_async_engine(database_url, **kwargs)
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> DatabaseManager:
        if not config.database_url:
            raise ValueError("DatabaseConfig.database_url is not set")
        return cls(config.database_url, echo=config.echo, pool_size=config.pool_size)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def is_sqlite(self) -> bool:
        return self._url.startswith("sqlite")

    def session(self) -> AsyncSession:
        return self._session_factory()

    async def create_all(self) -> None:
        """Create every table from the ORM metadata (tests and local dev)."""
        from nudge.db.base import Base
        import nudge.db.models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()
