"""
Cycle Count Domain Models (``recon_modules.cycle_count.models``).

Responsibility
--------------
Frozen value objects for the cycle-count workflow: the session aggregate, its
count lines, the scope filter that produced it, summary statistics, and the
posting summary returned after a successful post.

Architecture
------------
Layer: **Modules** -- pure domain data structures.  All dataclasses are
``frozen=True``; lifecycle functions return new instances via
``dataclasses.replace`` instead of mutating.  ORM conversion lives in
``orm.py``.

Invariants
----------
- ``CountItem.variance`` / ``variance_percent`` always agree with
  ``compute_variance(system_quantity, counted_quantity)``.
- An uncounted line has zero variance and ``approved == False``.
- ``ScopeFilter`` carries a value for every scope type except ALL.
- All quantities and amounts are ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from recon_engines.variance import (
    DEFAULT_MINOR_VARIANCE_PERCENT,
    VarianceClass,
    classify_variance,
    compute_variance,
)
from recon_kernel.domain.dtos import LedgerEntry, Material

__all__ = [
    "SessionStatus",
    "ScopeType",
    "ReasonCode",
    "ScopeFilter",
    "CountItem",
    "CountSession",
    "CountStats",
    "PostingSummary",
    "Material",
    "LedgerEntry",
]

_ZERO = Decimal("0")


class SessionStatus(str, Enum):
    """Count session lifecycle states."""

    DRAFT = "draft"
    COUNTING = "counting"
    REVIEW = "review"
    POSTED = "posted"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.POSTED, SessionStatus.CANCELLED)


class ScopeType(str, Enum):
    """How the session's candidate items were selected."""

    ALL = "all"
    DEPARTMENT = "department"
    LOCATION = "location"
    CATEGORY = "category"


class ReasonCode(str, Enum):
    """Why a counted quantity differs from the system quantity."""

    CYCLE_COUNT_ERROR = "cycle_count_error"
    DAMAGED = "damaged"
    EXPIRED = "expired"
    THEFT = "theft"
    RECEIVING_ERROR = "receiving_error"
    ISSUE_ERROR = "issue_error"
    FOUND = "found"
    OTHER = "other"


@dataclass(frozen=True)
class ScopeFilter:
    """Scope type plus the selected filter value (None for ALL)."""

    scope_type: ScopeType = ScopeType.ALL
    value: str | None = None

    def __post_init__(self):
        if self.scope_type is ScopeType.ALL:
            if self.value:
                raise ValueError("ALL scope does not take a filter value")
        elif not self.value:
            raise ValueError(f"{self.scope_type.value} scope requires a filter value")

    @classmethod
    def all(cls) -> ScopeFilter:
        return cls(ScopeType.ALL, None)

    @classmethod
    def department(cls, code: str) -> ScopeFilter:
        return cls(ScopeType.DEPARTMENT, code)

    @classmethod
    def location(cls, location: str) -> ScopeFilter:
        return cls(ScopeType.LOCATION, location)

    @classmethod
    def category(cls, category: str) -> ScopeFilter:
        return cls(ScopeType.CATEGORY, category)

    def search_kwargs(self) -> dict[str, str]:
        """Keyword filters for ``SqlMaterialCatalog.search``."""
        if self.scope_type is ScopeType.DEPARTMENT:
            return {"department_code": self.value}
        if self.scope_type is ScopeType.LOCATION:
            return {"location": self.value}
        if self.scope_type is ScopeType.CATEGORY:
            return {"category": self.value}
        return {}


@dataclass(frozen=True)
class CountItem:
    """
    One line of a count session, one per selected material.

    ``system_quantity`` and ``unit_price`` are snapshots taken when counting
    started; posting re-reads the live on-hand quantity and price.
    """

    line_number: int
    material_id: UUID
    material_number: str
    material_name: str
    material_sku: str
    unit_of_measure: str
    system_quantity: Decimal
    unit_price: Decimal = _ZERO
    counted_quantity: Decimal | None = None
    variance: Decimal = _ZERO
    variance_percent: int = 0
    reason_code: ReasonCode | None = None
    notes: str = ""
    approved: bool = False
    counted_at: datetime | None = None
    counted_by: str | None = None

    def __post_init__(self):
        expected = compute_variance(self.system_quantity, self.counted_quantity)
        if (self.variance, self.variance_percent) != (
            expected.variance,
            expected.variance_percent,
        ):
            raise ValueError(
                f"CountItem {self.material_number}: derived variance "
                f"({self.variance}, {self.variance_percent}%) does not match "
                f"({expected.variance}, {expected.variance_percent}%)"
            )
        if self.counted_quantity is None and self.approved:
            raise ValueError(
                f"CountItem {self.material_number}: uncounted line cannot be approved"
            )

    @classmethod
    def from_material(cls, line_number: int, material: Material) -> CountItem:
        return cls(
            line_number=line_number,
            material_id=material.id,
            material_number=material.material_number,
            material_name=material.name,
            material_sku=material.sku,
            unit_of_measure=material.unit_of_measure,
            system_quantity=material.on_hand_quantity,
            unit_price=material.unit_price,
        )

    @property
    def is_counted(self) -> bool:
        return self.counted_quantity is not None

    @property
    def has_variance(self) -> bool:
        return self.is_counted and self.variance != _ZERO

    @property
    def estimated_value(self) -> Decimal:
        """Variance priced at the snapshot unit price."""
        return self.variance * self.unit_price

    def classification(
        self, minor_threshold: int = DEFAULT_MINOR_VARIANCE_PERCENT
    ) -> VarianceClass | None:
        """Display class, or None while the line is uncounted."""
        if not self.is_counted:
            return None
        return classify_variance(self.variance, self.variance_percent, minor_threshold)


@dataclass(frozen=True)
class CountSession:
    """
    Aggregate root of one reconciliation run.

    ``id`` is None until the session store assigns it.  ``version`` is the
    optimistic-lock token of the persisted header.
    """

    session_number: str
    name: str
    scope: ScopeFilter
    created_by: str
    created_at: datetime
    status: SessionStatus = SessionStatus.DRAFT
    items: tuple[CountItem, ...] = ()
    id: UUID | None = None
    notes: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    posted_by: str | None = None
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def counted_items(self) -> int:
        return sum(1 for item in self.items if item.is_counted)

    @property
    def variance_count(self) -> int:
        return sum(1 for item in self.items if item.has_variance)

    def item_for(self, material_id: UUID) -> CountItem | None:
        for item in self.items:
            if item.material_id == material_id:
                return item
        return None


@dataclass(frozen=True)
class CountStats:
    """Progress and variance totals for a session, priced at snapshot cost."""

    total_items: int
    counted_items: int
    variance_count: int
    approved_count: int
    total_positive_value: Decimal = _ZERO
    total_negative_value: Decimal = _ZERO

    @property
    def uncounted_items(self) -> int:
        return self.total_items - self.counted_items

    @property
    def net_adjustment_value(self) -> Decimal:
        return self.total_positive_value - self.total_negative_value

    @property
    def progress(self) -> Decimal:
        """Counted / total as a fraction in [0, 1]."""
        if self.total_items == 0:
            return _ZERO
        return Decimal(self.counted_items) / Decimal(self.total_items)


@dataclass(frozen=True)
class PostingSummary:
    """
    What a successful post applied.

    ``total_negative_value`` is the absolute sum of negative value deltas.
    """

    session_id: UUID
    posted_by: str
    posted_at: datetime
    entries: tuple[LedgerEntry, ...] = field(default_factory=tuple)
    total_positive_value: Decimal = _ZERO
    total_negative_value: Decimal = _ZERO

    @property
    def net_adjustment_value(self) -> Decimal:
        return self.total_positive_value - self.total_negative_value

    @property
    def adjusted_material_ids(self) -> tuple[UUID, ...]:
        return tuple(entry.material_id for entry in self.entries)

    @classmethod
    def from_entries(
        cls,
        session_id: UUID,
        posted_by: str,
        posted_at: datetime,
        entries: tuple[LedgerEntry, ...],
    ) -> PostingSummary:
        positive = sum((e.value_delta for e in entries if e.value_delta > 0), _ZERO)
        negative = sum((-e.value_delta for e in entries if e.value_delta < 0), _ZERO)
        return cls(
            session_id=session_id,
            posted_by=posted_by,
            posted_at=posted_at,
            entries=entries,
            total_positive_value=positive,
            total_negative_value=negative,
        )
