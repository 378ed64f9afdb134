"""
Module: recon_engines
Responsibility:
    Pure calculation engines for the count workflow: variance computation and
    classification, and the approval gate.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recon_kernel domain types, rounding helpers, exceptions
    and logging.  MUST NOT import recon_modules.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic: floats are rejected.
    - Determinism: identical inputs always produce identical outputs.
"""

from recon_engines.approval import (
    DEFAULT_REASON_REQUIRED_ABOVE_PERCENT,
    ApprovalGateResult,
    GateItem,
    evaluate_gate,
    is_variant,
    needs_reason,
    variant_items,
)
from recon_engines.variance import (
    DEFAULT_MINOR_VARIANCE_PERCENT,
    NO_VARIANCE,
    VarianceClass,
    VarianceResult,
    classify_variance,
    compute_variance,
    variance_value,
)

__all__ = [
    "ApprovalGateResult",
    "GateItem",
    "evaluate_gate",
    "is_variant",
    "needs_reason",
    "variant_items",
    "DEFAULT_REASON_REQUIRED_ABOVE_PERCENT",
    "VarianceClass",
    "VarianceResult",
    "NO_VARIANCE",
    "classify_variance",
    "compute_variance",
    "variance_value",
    "DEFAULT_MINOR_VARIANCE_PERCENT",
]
