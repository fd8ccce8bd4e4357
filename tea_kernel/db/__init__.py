"""Database layer - engine, base classes, types, and immutability."""

from tea_kernel.db.base import UUID, Base, CreatedAtMixin, UUIDString
from tea_kernel.db.engine import (
    create_tables,
    get_engine,
    get_or_init_engine,
    get_session,
    get_session_factory,
    session_scope,
)
from tea_kernel.db.types import MONEY_DECIMAL_PLACES, money_context, round_money

__all__ = [
    "get_engine",
    "get_or_init_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "CreatedAtMixin",
    "UUIDString",
    "UUID",
    "MONEY_DECIMAL_PLACES",
    "money_context",
    "round_money",
]
