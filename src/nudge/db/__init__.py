"""Database layer for the nudge engine (SQLAlchemy 2.0 async)."""

from __future__ import annotations

from nudge.db.base import Base
from nudge.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
