"""SQL-backed repositories (Postgres in production, SQLite in tests)."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from nudge.core.errors import StoreUnavailable


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise database errors raised inside the block as ``StoreUnavailable``."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreUnavailable(f"{operation} failed: {exc}") from exc
