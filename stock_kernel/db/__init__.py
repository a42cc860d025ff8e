"""Database layer - engine, base classes, and balance guards."""

from stock_kernel.db.base import Base, TimestampMixin, TrackedBase
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TimestampMixin",
    "TrackedBase",
]
