"""Database layer - engine, base classes and column types."""

from receiving_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from receiving_kernel.db.engine import (
    create_tables,
    database_url_from_env,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_env,
    init_engine_from_url,
    session_scope,
)
from receiving_kernel.db.types import EnumString, Money, Quantity

__all__ = [
    "init_engine_from_url",
    "init_engine_from_env",
    "database_url_from_env",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "EnumString",
    "Money",
    "Quantity",
]
