"""
Cycle Count Pure Functions (``recon_modules.cycle_count.helpers``).

Responsibility
--------------
Stateless helpers for session numbering, session naming and count
statistics.  No I/O, no session, no clock access: the caller supplies the
current time and the random source.

Invariants
----------
- Session numbers follow ``<PREFIX>-YYMMDD-###``; the three-digit suffix is
  random and zero-padded.  Uniqueness is not guaranteed.
- Statistics are priced at the snapshot unit price on each line.
"""

from __future__ import annotations

import random
import re
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from recon_modules.cycle_count.models import CountItem, CountStats, ScopeFilter, ScopeType

SESSION_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Z0-9]+)-(?P<date>\d{6})-(?P<seq>\d{3})$")


def generate_session_number(
    now: datetime,
    rng: random.Random,
    prefix: str = "CNT",
) -> str:
    """
    Build a display session number such as ``CNT-240101-042``.

    The suffix is drawn from 0-999 inclusive.
    """
    return f"{prefix}-{now:%y%m%d}-{rng.randint(0, 999):03d}"


def build_session_name(session_number: str, scope: ScopeFilter) -> str:
    """
    Default session name for a scope.

    ``CNT-240101-042 - Dept MAINT`` for a department, ``CNT-... - <value>``
    for a location or category, the bare number for ALL.
    """
    if scope.scope_type is ScopeType.DEPARTMENT:
        return f"{session_number} - Dept {scope.value}"
    if scope.scope_type in (ScopeType.LOCATION, ScopeType.CATEGORY):
        return f"{session_number} - {scope.value}"
    return session_number


def compute_count_stats(items: Sequence[CountItem]) -> CountStats:
    """Progress counters and positive/negative variance value totals."""
    variant = [item for item in items if item.has_variance]
    positive = sum(
        (item.estimated_value for item in variant if item.variance > 0),
        Decimal("0"),
    )
    negative = sum(
        (-item.estimated_value for item in variant if item.variance < 0),
        Decimal("0"),
    )
    return CountStats(
        total_items=len(items),
        counted_items=sum(1 for item in items if item.is_counted),
        variance_count=len(variant),
        approved_count=sum(1 for item in variant if item.approved),
        total_positive_value=positive,
        total_negative_value=negative,
    )
