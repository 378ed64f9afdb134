"""
recon_engines.variance -- Count variance calculation and classification.

Responsibility:
    Turn a (system quantity, counted quantity) pair into a signed variance,
    an integer variance percentage, and a display classification.  Also
    prices a variance at a unit price.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recon_kernel/db/types rounding helpers.

Invariants enforced:
    - Replay safety: identical inputs produce identical outputs; no clock.
    - ``variance == counted - system`` whenever counted is not None.
    - ``variance_percent`` is an int rounded half away from zero.
    - A count against a non-positive system baseline is a 100% overage
      (or 0% when nothing was counted either), never an undefined ratio.

Failure modes:
    - ValueError on a negative counted quantity.
    - TypeError on float input (quantities must be Decimal, int or str).

Usage:
    from recon_engines.variance import compute_variance, classify_variance

    result = compute_variance(Decimal("100"), Decimal("95"))
    result.variance          # Decimal("-5")
    result.variance_percent  # -5
    classify_variance(result.variance, result.variance_percent)
    # VarianceClass.MINOR
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from recon_kernel.db.types import round_money, round_percent, to_decimal

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

DEFAULT_MINOR_VARIANCE_PERCENT = 5


class VarianceClass(str, Enum):
    """Display classification of a count line. Carries no gating logic."""

    MATCH = "match"
    MINOR = "minor"
    SIGNIFICANT = "significant"


@dataclass(frozen=True)
class VarianceResult:
    """Result of one variance computation."""

    variance: Decimal
    variance_percent: int

    @property
    def has_variance(self) -> bool:
        return self.variance != _ZERO

    @property
    def absolute_percent(self) -> int:
        return abs(self.variance_percent)


NO_VARIANCE = VarianceResult(variance=_ZERO, variance_percent=0)


def compute_variance(
    system_quantity: Decimal | int | str,
    counted_quantity: Decimal | int | str | None,
) -> VarianceResult:
    """
    Compute variance and variance percent for one count line.

    Postconditions:
        - counted is None -> (0, 0).
        - system > 0 -> percent = round(variance / system * 100).
        - system <= 0 -> percent = 100 if counted > 0 else 0.
    """
    if counted_quantity is None:
        return NO_VARIANCE

    system = to_decimal(system_quantity)
    counted = to_decimal(counted_quantity)
    if counted < _ZERO:
        raise ValueError(f"Counted quantity cannot be negative: {counted}")

    variance = counted - system

    if system > _ZERO:
        percent = round_percent(variance / system * _HUNDRED)
    elif counted > _ZERO:
        percent = 100
    else:
        percent = 0

    return VarianceResult(variance=variance, variance_percent=percent)


def classify_variance(
    variance: Decimal,
    variance_percent: int,
    minor_threshold: int = DEFAULT_MINOR_VARIANCE_PERCENT,
) -> VarianceClass:
    """
    MATCH when variance is zero, MINOR when |percent| <= threshold,
    otherwise SIGNIFICANT.

    A non-zero variance whose percent rounds to 0 is MINOR.
    """
    if variance == _ZERO:
        return VarianceClass.MATCH
    if abs(variance_percent) <= minor_threshold:
        return VarianceClass.MINOR
    return VarianceClass.SIGNIFICANT


def variance_value(variance: Decimal, unit_price: Decimal) -> Decimal:
    """Dollar value of a quantity variance at ``unit_price`` (unrounded)."""
    return variance * unit_price


def display_value(amount: Decimal) -> Decimal:
    """Round a variance value to cents for reporting."""
    return round_money(amount)
