"""
Cycle Count Module (``recon_modules.cycle_count``).

Responsibility
--------------
Physical-count reconciliation: select materials, snapshot their system
quantities, record counts, review and approve variances, and post the
approved adjustments to the catalog and the inventory ledger in one
transaction.

Architecture
------------
Layer: **Modules** -- DTOs, workflow, config schema, pure lifecycle
functions, persistence (ORM + store) and a thin orchestration service.
Variance math and the approval gate come from ``recon_engines``; material
access and the ledger table come from ``recon_kernel``.

Invariants
----------
- Each service method owns its transaction boundary (commit / rollback).
- Posting is all-or-nothing and never posts the same line twice.
- POSTED and CANCELLED sessions are frozen.

Failure Modes
-------------
- Typed ``ReconKernelError`` subclasses for every rejected operation.
- ``CycleCountService.post`` returns a non-success ``PostingResult`` when
  the gate blocks or posting conflicts persist.
"""

from recon_modules.cycle_count.models import (
    CountItem,
    CountSession,
    CountStats,
    PostingSummary,
    ReasonCode,
    ScopeFilter,
    ScopeType,
    SessionStatus,
)
from recon_modules.cycle_count.workflows import COUNT_SESSION_WORKFLOW
from recon_modules.cycle_count.config import CycleCountConfig
from recon_modules.cycle_count.posting import PostingEngine, PostingResult, PostingStatus
from recon_modules.cycle_count.selector import ItemSelector, SelectorFacets
from recon_modules.cycle_count.store import CountSessionStore
from recon_modules.cycle_count.service import CycleCountService

__all__ = [
    "CountItem",
    "CountSession",
    "CountStats",
    "PostingSummary",
    "ReasonCode",
    "ScopeFilter",
    "ScopeType",
    "SessionStatus",
    "COUNT_SESSION_WORKFLOW",
    "CycleCountConfig",
    "PostingEngine",
    "PostingResult",
    "PostingStatus",
    "ItemSelector",
    "SelectorFacets",
    "CountSessionStore",
    "CycleCountService",
]
