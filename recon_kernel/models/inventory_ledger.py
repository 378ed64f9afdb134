"""
Module: recon_kernel.models.inventory_ledger
Responsibility: ORM persistence for inventory ledger entries -- the permanent
    record of every quantity/value adjustment applied by a posted count.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only.  ORM listeners in db/immutability.py reject UPDATE and
      DELETE.
    - ``idempotency_key`` is UNIQUE.  A session can write at most one entry per
      material, so a replayed posting fails at the database even if the
      session-level guard were bypassed.
    - ``value_delta == quantity_delta * unit_price`` (posting-time price).

Failure modes:
    - IntegrityError on duplicate idempotency_key.
    - ImmutabilityViolationError on any ORM update/delete.

Audit relevance:
    Each row names the session, the material, the actor and the reason code,
    and carries the on-hand quantity before and after the adjustment.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base, UTCDateTime, UUIDString


class InventoryLedgerEntryModel(Base):
    """
    Immutable inventory adjustment row.

    Non-goals:
        - No foreign keys to count sessions or materials: the ledger must
          outlive either record.
    """

    __tablename__ = "inventory_ledger_entries"

    __table_args__ = (
        Index("idx_inv_ledger_session", "session_id"),
        Index("idx_inv_ledger_material", "material_id"),
        Index("idx_inv_ledger_posted_at", "posted_at"),
    )

    session_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    material_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity_delta: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    value_delta: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    quantity_before: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    reason_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    posted_by: Mapped[str] = mapped_column(String(200), nullable=False)
    posted_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    # cycle_count:<session_id>:<material_id>
    idempotency_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    def to_dto(self):
        """Convert ORM model to frozen LedgerEntry DTO."""
        from recon_kernel.domain.dtos import LedgerEntry

        return LedgerEntry(
            id=self.id,
            session_id=self.session_id,
            material_id=self.material_id,
            quantity_delta=self.quantity_delta,
            unit_price=self.unit_price,
            value_delta=self.value_delta,
            quantity_before=self.quantity_before,
            quantity_after=self.quantity_after,
            posted_by=self.posted_by,
            posted_at=self.posted_at,
            idempotency_key=self.idempotency_key,
            reason_code=self.reason_code,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryLedgerEntryModel {self.idempotency_key} "
            f"delta={self.quantity_delta}>"
        )
