"""Database layer - engine, base classes, types, and immutability."""

from recon_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from recon_kernel.db.engine import create_tables, get_engine, get_session
from recon_kernel.db.types import round_money, round_percent

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "round_money",
    "round_percent",
]
