"""
recon_engines.approval -- Pure approval gate for count sessions.

Responsibility:
    Decide whether a count session's lines may be posted.  The gate looks only
    at the variant lines (counted, non-zero variance) and applies two rules:

    1. Full approval: every variant line has ``approved == True``.
    2. Reason completeness: every variant line whose ``|variance_percent|``
       exceeds the threshold carries a reason code.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Accepts any objects that
    satisfy ``GateItem``; the cycle-count module passes its ``CountItem``
    DTOs.

Invariants enforced:
    - Side-effect free: evaluating the gate any number of times changes
      nothing.
    - Uncounted lines are excluded from the variant set; they are never a
      gate failure.
    - Failures are returned as data (``ApprovalGateResult``) carrying the
      typed validation errors, not raised.

Failure modes:
    - None raised.  ``ApprovalGateResult.raise_for_failure()`` raises the
      first failing rule's error for callers that want an exception.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from recon_engines.tracer import traced_engine
from recon_kernel.exceptions import (
    CountValidationError,
    MissingReasonsError,
    UnapprovedVariancesError,
)

DEFAULT_REASON_REQUIRED_ABOVE_PERCENT = 10


class GateItem(Protocol):
    material_id: UUID
    counted_quantity: Decimal | None
    variance: Decimal
    variance_percent: int
    approved: bool
    reason_code: object | None


def is_variant(item: GateItem) -> bool:
    """A line is variant when it was counted and differs from the system."""
    return item.counted_quantity is not None and item.variance != 0


def variant_items(items: Iterable[GateItem]) -> list[GateItem]:
    """The variant subset, in line order."""
    return [item for item in items if is_variant(item)]


def needs_reason(item: GateItem, threshold_percent: int) -> bool:
    return is_variant(item) and abs(item.variance_percent) > threshold_percent


@dataclass(frozen=True)
class ApprovalGateResult:
    """Outcome of one gate evaluation."""

    variant_material_ids: tuple[UUID, ...]
    unapproved_material_ids: tuple[UUID, ...]
    missing_reason_material_ids: tuple[UUID, ...]
    reason_threshold_percent: int

    @property
    def passed(self) -> bool:
        return not self.unapproved_material_ids and not self.missing_reason_material_ids

    @property
    def variance_count(self) -> int:
        return len(self.variant_material_ids)

    @property
    def errors(self) -> tuple[CountValidationError, ...]:
        """Typed validation errors, full-approval rule first."""
        errors: list[CountValidationError] = []
        if self.unapproved_material_ids:
            errors.append(
                UnapprovedVariancesError(
                    len(self.unapproved_material_ids),
                    [str(mid) for mid in self.unapproved_material_ids],
                )
            )
        if self.missing_reason_material_ids:
            errors.append(
                MissingReasonsError(
                    len(self.missing_reason_material_ids),
                    self.reason_threshold_percent,
                    [str(mid) for mid in self.missing_reason_material_ids],
                )
            )
        return tuple(errors)

    @property
    def first_error(self) -> CountValidationError | None:
        errors = self.errors
        return errors[0] if errors else None

    def raise_for_failure(self) -> None:
        error = self.first_error
        if error is not None:
            raise error


@traced_engine("approval_gate", "1.0", fingerprint_fields=("reason_threshold_percent",))
def evaluate_gate(
    items: Sequence[GateItem],
    reason_threshold_percent: int = DEFAULT_REASON_REQUIRED_ABOVE_PERCENT,
) -> ApprovalGateResult:
    """
    Evaluate both gate rules over ``items``.

    Items with ``|variance_percent| <= reason_threshold_percent`` may omit a
    reason.
    """
    variants = variant_items(items)
    unapproved = tuple(item.material_id for item in variants if not item.approved)
    missing = tuple(
        item.material_id
        for item in variants
        if abs(item.variance_percent) > reason_threshold_percent and not item.reason_code
    )
    return ApprovalGateResult(
        variant_material_ids=tuple(item.material_id for item in variants),
        unapproved_material_ids=unapproved,
        missing_reason_material_ids=missing,
        reason_threshold_percent=reason_threshold_percent,
    )
