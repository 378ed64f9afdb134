"""
Module: recon_kernel.db.base
Responsibility: Declarative bases and column types shared by every ORM model
    in the kernel and the modules.
Architecture position: Kernel > DB.  Bottom of the import graph; imports
    nothing from the rest of the package.

Conventions:
    - Primary keys are uuid4 values stored as 36-char strings (``UUIDString``)
      so the same schema runs on PostgreSQL and SQLite.
    - ``Decimal`` annotations map to ``Numeric(38, 9)``.  Quantities and
      prices are never floats.
    - ``datetime`` annotations map to ``UTCDateTime``: naive values are
      rejected on write, and every value read back is aware UTC.
    - ``TrackedBase`` adds ``created_at`` / ``updated_at`` and the
      ``created_by`` / ``updated_by`` actor strings.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class UTCDateTime(TypeDecorator):
    """Aware datetimes only, stored and returned in UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        # SQLite hands back naive values
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Base for mutable rows: audit timestamps plus creating/updating actor."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by: Mapped[str] = mapped_column(String(200), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(200), nullable=True)


UUID = PyUUID
