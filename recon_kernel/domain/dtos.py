"""
DTOs -- Pure domain data transfer objects for catalog and ledger records.

Responsibility:
    Immutable snapshots of the two kernel-owned records that cross the
    persistence boundary: ``Material`` (a catalog row, read-only to the count
    workflow) and ``LedgerEntry`` (one posted inventory adjustment).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ORM models convert
    to these via ``to_dto()``; domain and engine code never touch ORM rows.

Invariants enforced:
    - Quantities and amounts are Decimal, never float.
    - LedgerEntry.quantity_after == quantity_before + quantity_delta (checked
      in ``__post_init__``).  value_delta is quantity_delta * unit_price at
      storage precision.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class Material:
    """
    A catalog item as seen by the count workflow.

    ``version`` is the compare-and-swap token for ``on_hand_quantity``.
    """

    id: UUID
    material_number: str
    name: str
    sku: str
    department_code: str
    unit_of_measure: str
    unit_price: Decimal
    on_hand_quantity: Decimal
    location: str | None = None
    category: str | None = None
    version: int = 1
    last_counted_at: datetime | None = None


@dataclass(frozen=True)
class LedgerEntry:
    """One immutable inventory adjustment written by a posted count."""

    id: UUID
    session_id: UUID
    material_id: UUID
    quantity_delta: Decimal
    unit_price: Decimal
    value_delta: Decimal
    quantity_before: Decimal
    quantity_after: Decimal
    posted_by: str
    posted_at: datetime
    idempotency_key: str
    reason_code: str | None = None

    def __post_init__(self) -> None:
        if self.quantity_after != self.quantity_before + self.quantity_delta:
            raise ValueError(
                f"LedgerEntry quantity_after {self.quantity_after} does not "
                f"follow from quantity_before + delta for material {self.material_id}"
            )

    @property
    def is_increase(self) -> bool:
        return self.quantity_delta > 0
