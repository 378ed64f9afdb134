"""
PostingEngine -- atomic, idempotent application of approved variances.

Responsibility:
    Turn a count session in REVIEW into inventory adjustments: claim the
    session (REVIEW -> POSTED), then for every line with a non-zero variance
    move the material's ``on_hand_quantity`` by exactly that variance and
    append one immutable ledger entry.

Architecture position:
    Modules > Cycle Count -- imperative shell.  Runs inside the caller's
    transaction and only flushes; ``CycleCountService.post`` commits on
    success and rolls back on any failure, so either every adjustment and
    the status change land together or none of them do.

Invariants enforced:
    - Adjustments are applied as ``current + variance`` through a
      compare-and-swap on the material version.  The delta is never
      recomputed from the current quantity, and a count never overwrites.
    - Exactly one ledger entry per variant line, keyed by
      ``cycle_count:<session>:<material>``.  The key is unique in storage,
      so a replay of the same posting cannot double-apply.
    - The session claim is a conditional UPDATE on (status, version); a
      second poster loses the claim before touching any material.
    - Materials are adjusted in a fixed order (material id) so concurrent
      posters that lock rows acquire them in the same sequence.

Failure modes:
    - AlreadyPostedError: the session is already POSTED.
    - InvalidTransitionError: the session is not in REVIEW.
    - OptimisticLockError: the session header moved since it was read.
    - PostingConflictError: a material kept changing through every retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from recon_engines.approval import ApprovalGateResult, variant_items
from recon_kernel.domain.clock import Clock
from recon_kernel.domain.dtos import LedgerEntry
from recon_kernel.exceptions import OptimisticLockError, PostingConflictError
from recon_kernel.logging_config import get_logger
from recon_kernel.models.inventory_ledger import InventoryLedgerEntryModel
from recon_kernel.services.material_catalog import SqlMaterialCatalog
from recon_kernel.utils.idempotency import generate_idempotency_key
from recon_modules.cycle_count import lifecycle
from recon_modules.cycle_count.config import CycleCountConfig
from recon_modules.cycle_count.models import CountItem, CountSession, PostingSummary
from recon_modules.cycle_count.store import CountSessionStore

logger = get_logger("modules.cycle_count.posting")

POSTING_PRODUCER = "cycle_count"

# Storage precision of Numeric(38, 9).
_VALUE_QUANTUM = Decimal("0.000000001")


class PostingStatus(str, Enum):
    """Outcome of a posting attempt."""

    POSTED = "posted"
    UNAPPROVED_VARIANCES = "unapproved_variances"
    MISSING_REASONS = "missing_reasons"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class PostingResult:
    """Result of ``CycleCountService.post``."""

    status: PostingStatus
    session_id: UUID
    ledger_entry_ids: tuple[UUID, ...] = ()
    summary: PostingSummary | None = None
    gate: ApprovalGateResult | None = None
    blocking_material_ids: tuple[UUID, ...] = ()
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status is PostingStatus.POSTED


class PostingEngine:
    """
    Applies a reviewed session's variances to the catalog and the ledger.

    The approval gate is not evaluated here; callers check it first (see
    ``CycleCountService.post``).
    """

    def __init__(
        self,
        session: Session,
        catalog: SqlMaterialCatalog,
        store: CountSessionStore,
        clock: Clock,
        config: CycleCountConfig,
    ):
        self._session = session
        self._catalog = catalog
        self._store = store
        self._clock = clock
        self._config = config

    def post(self, count_session: CountSession, performed_by: str) -> PostingSummary:
        """
        Claim the session and apply every variant line.

        Leaves the caller's transaction dirty on failure; the caller must
        roll back.
        """
        now = self._clock.now()
        posted = lifecycle.mark_posted(count_session, now, performed_by)
        self._store.claim_for_posting(posted, expected_version=count_session.version)

        lines = sorted(variant_items(count_session.items), key=lambda item: str(item.material_id))
        logger.info(
            "posting_started",
            extra={
                "session_id": str(count_session.id),
                "line_count": len(lines),
                "concurrency_mode": self._config.concurrency_mode,
            },
        )

        entries = tuple(
            self._apply_line(count_session.id, line, performed_by, now) for line in lines
        )
        self._session.flush()

        summary = PostingSummary.from_entries(
            session_id=count_session.id,
            posted_by=performed_by,
            posted_at=now,
            entries=entries,
        )
        logger.info(
            "posting_applied",
            extra={
                "session_id": str(count_session.id),
                "entry_count": len(entries),
                "net_adjustment_value": str(summary.net_adjustment_value),
            },
        )
        return summary

    def _apply_line(
        self,
        session_id: UUID,
        line: CountItem,
        performed_by: str,
        now: datetime,
    ) -> LedgerEntry:
        attempts = self._config.max_posting_attempts
        for attempt in range(1, attempts + 1):
            material = self._catalog.read_current(
                line.material_id, lock=self._config.pessimistic
            )
            try:
                self._catalog.adjust_on_hand(
                    line.material_id,
                    line.variance,
                    expected_version=material.version,
                    counted_at=now,
                )
            except OptimisticLockError:
                logger.warning(
                    "posting_conflict_retry",
                    extra={
                        "session_id": str(session_id),
                        "material_id": str(line.material_id),
                        "attempt": attempt,
                        "max_attempts": attempts,
                    },
                )
                continue

            row = InventoryLedgerEntryModel(
                id=uuid4(),
                session_id=session_id,
                material_id=line.material_id,
                quantity_delta=line.variance,
                unit_price=material.unit_price,
                value_delta=(line.variance * material.unit_price).quantize(_VALUE_QUANTUM),
                quantity_before=material.on_hand_quantity,
                quantity_after=material.on_hand_quantity + line.variance,
                reason_code=line.reason_code.value if line.reason_code else None,
                posted_by=performed_by,
                posted_at=now,
                idempotency_key=generate_idempotency_key(
                    POSTING_PRODUCER, session_id, line.material_id
                ),
            )
            self._session.add(row)
            return row.to_dto()

        logger.error(
            "posting_conflict_exhausted",
            extra={
                "session_id": str(session_id),
                "material_id": str(line.material_id),
                "attempts": attempts,
            },
        )
        raise PostingConflictError(str(line.material_id), attempts)
