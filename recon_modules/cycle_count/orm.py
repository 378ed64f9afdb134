"""
Module: recon_modules.cycle_count.orm
Responsibility: SQLAlchemy ORM persistence models for the cycle-count module.
    Maps the frozen ``CountSession`` / ``CountItem`` DTOs from
    cycle_count.models to relational tables.

Architecture position: Modules > Cycle Count > ORM.  Inherits from TrackedBase
    (recon_kernel.db.base).  References catalog materials via UUID columns with
    NO foreign key constraints.

Invariants enforced:
    - All quantity and price fields use Decimal (Numeric(38,9)) -- NEVER float.
    - Enum fields stored as String(50) for portability and readability.
    - ``version`` is the header's optimistic-lock column.  SQLAlchemy adds
      ``WHERE version = <old>`` to every header UPDATE; the application
      supplies the new value.
    - (session_id, material_id) is unique: one line per material.

Failure modes:
    - StaleDataError when the header version moved underneath a save (the
      store translates it to OptimisticLockError).
    - IntegrityError on a duplicate line.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recon_kernel.db.base import TrackedBase, UTCDateTime, UUIDString


# =============================================================================
# CountSessionModel
# =============================================================================


class CountSessionModel(TrackedBase):
    """
    ORM model for the count session header.

    Maps to: recon_modules.cycle_count.models.CountSession (frozen dataclass).

    Guarantees:
        - ``items`` is ordered by ``line_number``.
        - ``total_items`` / ``counted_items`` / ``variance_count`` mirror the
          line set on every save (list views read them without loading lines).
    """

    __tablename__ = "count_sessions"

    __table_args__ = (
        Index("idx_count_session_status", "status"),
        Index("idx_count_session_created", "created_at"),
        Index("idx_count_session_number", "session_number"),
    )

    session_number: Mapped[str] = mapped_column(String(30), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # ScopeType enum stored as string
    scope_type: Mapped[str] = mapped_column(String(50), nullable=False, default="all")
    scope_value: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # SessionStatus enum stored as string
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    posted_by: Mapped[str | None] = mapped_column(String(200), nullable=True)

    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    counted_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    variance_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    items: Mapped[list[CountItemModel]] = relationship(
        back_populates="count_session",
        cascade="all, delete-orphan",
        order_by="CountItemModel.line_number",
        lazy="selectin",
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    def to_dto(self):
        """Convert ORM model (header and lines) to a frozen CountSession DTO."""
        from recon_modules.cycle_count.models import (
            CountSession,
            ScopeFilter,
            ScopeType,
            SessionStatus,
        )

        return CountSession(
            id=self.id,
            session_number=self.session_number,
            name=self.name,
            scope=ScopeFilter(ScopeType(self.scope_type), self.scope_value),
            created_by=self.created_by,
            created_at=self.created_at,
            status=SessionStatus(self.status),
            items=tuple(item.to_dto() for item in self.items),
            notes=self.notes or "",
            started_at=self.started_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
            posted_by=self.posted_by,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto) -> CountSessionModel:
        """Create ORM model from a frozen CountSession DTO."""
        model = cls(
            session_number=dto.session_number,
            name=dto.name,
            scope_type=dto.scope.scope_type.value,
            scope_value=dto.scope.value,
            status=dto.status.value,
            notes=dto.notes,
            started_at=dto.started_at,
            completed_at=dto.completed_at,
            cancelled_at=dto.cancelled_at,
            posted_by=dto.posted_by,
            total_items=dto.total_items,
            counted_items=dto.counted_items,
            variance_count=dto.variance_count,
            version=dto.version,
            created_by=dto.created_by,
            created_at=dto.created_at,
            updated_at=dto.created_at,
            items=[
                CountItemModel.from_dto(item, created_by=dto.created_by)
                for item in dto.items
            ],
        )
        if dto.id is not None:
            model.id = dto.id
        return model

    def __repr__(self) -> str:
        return (
            f"<CountSessionModel {self.session_number} status={self.status} "
            f"items={self.total_items} v{self.version}>"
        )


# =============================================================================
# CountItemModel
# =============================================================================


class CountItemModel(TrackedBase):
    """
    ORM model for one count line.

    Maps to: recon_modules.cycle_count.models.CountItem (frozen dataclass).

    Guarantees:
        - system_quantity / counted_quantity / variance / unit_price use
          Decimal (Numeric(38,9)).
        - material_id references a catalog material via UUID (no FK).
    """

    __tablename__ = "count_items"

    __table_args__ = (
        UniqueConstraint("session_id", "material_id", name="uq_count_item_material"),
        Index("idx_count_item_session", "session_id"),
        Index("idx_count_item_material", "material_id"),
    )

    session_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("count_sessions.id"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Catalog reference (no FK) and display snapshot
    material_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    material_number: Mapped[str] = mapped_column(String(50), nullable=False)
    material_name: Mapped[str] = mapped_column(String(255), nullable=False)
    material_sku: Mapped[str] = mapped_column(String(100), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)

    system_quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    counted_quantity: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    variance: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))
    variance_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ReasonCode enum stored as string
    reason_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    counted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    counted_by: Mapped[str | None] = mapped_column(String(200), nullable=True)

    count_session: Mapped[CountSessionModel] = relationship(back_populates="items")

    def to_dto(self):
        """Convert ORM model to frozen CountItem DTO."""
        from recon_modules.cycle_count.models import CountItem, ReasonCode

        return CountItem(
            line_number=self.line_number,
            material_id=self.material_id,
            material_number=self.material_number,
            material_name=self.material_name,
            material_sku=self.material_sku,
            unit_of_measure=self.unit_of_measure,
            system_quantity=self.system_quantity,
            unit_price=self.unit_price,
            counted_quantity=self.counted_quantity,
            variance=self.variance,
            variance_percent=self.variance_percent,
            reason_code=ReasonCode(self.reason_code) if self.reason_code else None,
            notes=self.notes or "",
            approved=self.approved,
            counted_at=self.counted_at,
            counted_by=self.counted_by,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str | None = None) -> CountItemModel:
        """Create ORM model from a frozen CountItem DTO."""
        model = cls(line_number=dto.line_number, material_id=dto.material_id)
        model.apply_dto(dto)
        model.created_by = created_by or dto.counted_by or "system"
        return model

    def apply_dto(self, dto) -> None:
        """Copy the mutable line fields from ``dto``."""
        self.material_number = dto.material_number
        self.material_name = dto.material_name
        self.material_sku = dto.material_sku
        self.unit_of_measure = dto.unit_of_measure
        self.system_quantity = dto.system_quantity
        self.unit_price = dto.unit_price
        self.counted_quantity = dto.counted_quantity
        self.variance = dto.variance
        self.variance_percent = dto.variance_percent
        self.reason_code = dto.reason_code.value if dto.reason_code else None
        self.notes = dto.notes
        self.approved = dto.approved
        self.counted_at = dto.counted_at
        self.counted_by = dto.counted_by

    def __repr__(self) -> str:
        return (
            f"<CountItemModel #{self.line_number} {self.material_number} "
            f"system={self.system_quantity} counted={self.counted_quantity}>"
        )
