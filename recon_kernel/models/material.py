"""
Module: recon_kernel.models.material
Responsibility: ORM persistence for the materials catalog rows the count
    workflow reads and adjusts.  The catalog is authored elsewhere; this core
    only snapshots ``on_hand_quantity`` and, at posting time, adjusts it.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, domain/ (except DTOs), or outer layers.

Invariants enforced:
    - ``on_hand_quantity`` is written only by the posting engine, through
      ``SqlMaterialCatalog.adjust_on_hand``.
    - ``version`` increases by exactly one on every on-hand write.  Writers
      compare-and-swap on it, so a concurrent receipt or issue between
      snapshot and posting is never silently overwritten.

Failure modes:
    - IntegrityError on duplicate ``material_number``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import TrackedBase, UTCDateTime


class MaterialModel(TrackedBase):
    """
    Persistent catalog row for one stocked material.

    Guarantees:
        - unit_price and on_hand_quantity are Numeric(38, 9).
        - (department_code), (location), (category) are indexed for the
          item selector's scope filters.
    """

    __tablename__ = "materials"

    __table_args__ = (
        Index("idx_material_department", "department_code"),
        Index("idx_material_location", "location"),
        Index("idx_material_category", "category"),
        Index("idx_material_sku", "sku"),
    )

    material_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    department_code: Mapped[str] = mapped_column(String(50), nullable=False)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    unit_of_measure: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="EA",
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )
    on_hand_quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    # Compare-and-swap token for on_hand_quantity
    version: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    last_counted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    def to_dto(self):
        """Convert ORM model to frozen Material DTO."""
        from recon_kernel.domain.dtos import Material

        return Material(
            id=self.id,
            material_number=self.material_number,
            name=self.name,
            sku=self.sku,
            department_code=self.department_code,
            location=self.location,
            category=self.category,
            unit_of_measure=self.unit_of_measure,
            unit_price=self.unit_price,
            on_hand_quantity=self.on_hand_quantity,
            version=self.version,
            last_counted_at=self.last_counted_at,
        )

    def __repr__(self) -> str:
        return (
            f"<MaterialModel {self.material_number} sku={self.sku} "
            f"on_hand={self.on_hand_quantity} v{self.version}>"
        )
