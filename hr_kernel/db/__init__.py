"""Database layer - engine, base classes, types, and immutability guards."""

from hr_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from hr_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from hr_kernel.db.types import Money, MonthYearCode, Percentage, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "MonthYearCode",
    "Percentage",
    "round_money",
]
