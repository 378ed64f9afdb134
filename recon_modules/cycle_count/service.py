"""
Cycle Count Module Service (``recon_modules.cycle_count.service``).

Responsibility
--------------
Orchestrates count sessions by composing the pure lifecycle functions, the
variance and approval engines, the session store, the item selector and the
posting engine.  This is a **thin glue layer**: every rule lives in
``lifecycle``, ``recon_engines`` or ``PostingEngine``.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Loads the aggregate through ``CountSessionStore``.
2. Applies one ``lifecycle`` function (pure).
3. Saves it back with the version it was read at.
4. For posting: evaluates the approval gate, then hands the session to
   ``PostingEngine``.

Invariants
----------
- Each public mutating method owns its transaction boundary: commit on
  success, rollback on failure.  Store, catalog and posting engine only
  flush.
- A failed post leaves no partial state: the status claim, every material
  adjustment and every ledger entry roll back together.
- The approval gate is evaluated against the stored aggregate inside the
  posting transaction.

Failure Modes
-------------
- Validation and workflow errors (``CountValidationError``,
  ``WorkflowError``) propagate after rollback.
- ``post`` reports gate failures and exhausted conflicts as a non-success
  ``PostingResult``; ``AlreadyPostedError`` and other errors propagate.

Usage::

    service = CycleCountService(session, clock=clock)
    draft = service.create_session(ScopeFilter.department("MAINT"), "alice")
    service.start_counting(draft.id, [m.id for m in service.candidates(draft.scope)], "alice")
    service.record_count(draft.id, material_id, Decimal("5"), "alice")
"""

from __future__ import annotations

import random
from decimal import Decimal
from typing import Callable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from recon_engines.approval import ApprovalGateResult, evaluate_gate
from recon_kernel.domain.clock import Clock, SystemClock
from recon_kernel.exceptions import (
    OptimisticLockError,
    PostingConflictError,
    UnapprovedVariancesError,
)
from recon_kernel.logging_config import LogContext, get_logger
from recon_kernel.models.inventory_ledger import InventoryLedgerEntryModel
from recon_kernel.services.material_catalog import SqlMaterialCatalog
from recon_modules.cycle_count import lifecycle
from recon_modules.cycle_count.config import CycleCountConfig
from recon_modules.cycle_count.helpers import (
    build_session_name,
    compute_count_stats,
    generate_session_number,
)
from recon_modules.cycle_count.models import (
    CountSession,
    CountStats,
    LedgerEntry,
    Material,
    ReasonCode,
    ScopeFilter,
    SessionStatus,
)
from recon_modules.cycle_count.posting import PostingEngine, PostingResult, PostingStatus
from recon_modules.cycle_count.selector import ItemSelector, SelectorFacets
from recon_modules.cycle_count.store import CountSessionStore
from recon_modules.cycle_count.workflows import POST

logger = get_logger("modules.cycle_count.service")


class CycleCountService:
    """
    Orchestrates cycle counts from selection to posting.

    Contract
    --------
    Every mutating method takes the session id and the acting user, applies
    one lifecycle step and returns the stored ``CountSession`` with its new
    ``version``.  Read methods return DTOs and never commit.

    Non-goals
    ---------
    - No authorization: ``performed_by`` is recorded, not checked.
    - No UI formatting beyond ``CountStats``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: CycleCountConfig | None = None,
        rng: random.Random | None = None,
        catalog: SqlMaterialCatalog | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or CycleCountConfig.with_defaults()
        self._rng = rng or random.Random()

        self._catalog = catalog or SqlMaterialCatalog(session)
        self._store = CountSessionStore(session)
        self._selector = ItemSelector(self._catalog)
        self._poster = PostingEngine(
            session=session,
            catalog=self._catalog,
            store=self._store,
            clock=self._clock,
            config=self._config,
        )

    @property
    def config(self) -> CycleCountConfig:
        return self._config

    # =========================================================================
    # Selection
    # =========================================================================

    def candidates(self, scope: ScopeFilter, search_text: str | None = None) -> list[Material]:
        return self._selector.candidates(scope, search_text)

    def facets(self) -> SelectorFacets:
        return self._selector.facets()

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def create_session(
        self,
        scope: ScopeFilter,
        created_by: str,
        name: str | None = None,
        notes: str = "",
    ) -> CountSession:
        """
        Open a DRAFT session for ``scope``.

        The session number is ``<prefix>-YYMMDD-###``; ``name`` defaults to
        a scope-derived label.
        """
        now = self._clock.now()
        session_number = generate_session_number(
            now, self._rng, prefix=self._config.session_number_prefix
        )
        draft = CountSession(
            session_number=session_number,
            name=name or build_session_name(session_number, scope),
            scope=scope,
            created_by=created_by,
            created_at=now,
            notes=notes or "",
        )
        with LogContext.bind(actor=created_by):
            try:
                session_id = self._store.create(draft)
                created = self._store.get(session_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "count_session_created",
                extra={
                    "session_id": str(session_id),
                    "session_number": session_number,
                    "scope_type": scope.scope_type.value,
                    "scope_value": scope.value,
                },
            )
        return created

    def start_counting(
        self,
        session_id: UUID,
        material_ids: Sequence[UUID],
        performed_by: str,
    ) -> CountSession:
        """
        DRAFT -> COUNTING with one line per selected material.

        ``system_quantity`` and ``unit_price`` are snapshotted from the
        catalog now and never refreshed.

        Raises:
            EmptySelectionError: ``material_ids`` is empty.
            MaterialNotFoundError: an id is not in the catalog.
        """

        def change(current: CountSession) -> CountSession:
            materials = self._selector.resolve(material_ids)
            return lifecycle.start_counting(current, materials, self._clock.now())

        return self._apply(session_id, performed_by, "count_session_started", change)

    def submit_for_review(self, session_id: UUID, performed_by: str) -> CountSession:
        return self._apply(
            session_id, performed_by, "count_session_submitted", lifecycle.submit_for_review
        )

    def return_to_counting(self, session_id: UUID, performed_by: str) -> CountSession:
        return self._apply(
            session_id, performed_by, "count_session_reopened", lifecycle.return_to_counting
        )

    def cancel(self, session_id: UUID, performed_by: str) -> CountSession:
        """Abandon the session.  Nothing is posted; the catalog is untouched."""
        return self._apply(
            session_id,
            performed_by,
            "count_session_cancelled",
            lambda current: lifecycle.cancel(current, self._clock.now()),
        )

    def update_session_details(
        self,
        session_id: UUID,
        performed_by: str,
        expected_version: int | None = None,
        **fields,
    ) -> CountSession:
        """Rename or annotate a session (``name``, ``notes``)."""
        with LogContext.bind(session_id=str(session_id), actor=performed_by):
            try:
                updated = self._store.update(
                    session_id, performed_by, expected_version=expected_version, **fields
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
            logger.info(
                "count_session_details_updated",
                extra={"session_id": str(session_id), "fields": sorted(fields)},
            )
        return updated

    # =========================================================================
    # Count entry and review
    # =========================================================================

    def record_count(
        self,
        session_id: UUID,
        material_id: UUID,
        counted_quantity: Decimal | int | str,
        performed_by: str,
    ) -> CountSession:
        """
        Enter the physical count for one line.

        Raises:
            SessionFrozenError: the session is not COUNTING.
            InvalidQuantityError: negative or non-numeric quantity.
        """
        return self._apply(
            session_id,
            performed_by,
            "count_recorded",
            lambda current: lifecycle.record_count(
                current,
                material_id,
                counted_quantity,
                performed_by,
                self._clock.now(),
                clear_approval=self._config.clear_approval_on_recount,
            ),
            material_id=material_id,
        )

    def clear_count(self, session_id: UUID, material_id: UUID, performed_by: str) -> CountSession:
        return self._apply(
            session_id,
            performed_by,
            "count_cleared",
            lambda current: lifecycle.clear_count(current, material_id),
            material_id=material_id,
        )

    def set_reason(
        self,
        session_id: UUID,
        material_id: UUID,
        reason_code: ReasonCode | str | None,
        performed_by: str,
    ) -> CountSession:
        return self._apply(
            session_id,
            performed_by,
            "variance_reason_set",
            lambda current: lifecycle.set_reason(current, material_id, reason_code),
            material_id=material_id,
        )

    def set_notes(
        self,
        session_id: UUID,
        material_id: UUID,
        notes: str,
        performed_by: str,
    ) -> CountSession:
        return self._apply(
            session_id,
            performed_by,
            "count_notes_set",
            lambda current: lifecycle.set_notes(current, material_id, notes),
            material_id=material_id,
        )

    def set_approval(
        self,
        session_id: UUID,
        material_id: UUID,
        approved: bool,
        performed_by: str,
    ) -> CountSession:
        """
        Approve or un-approve one line.

        Raises:
            ItemNotCountedError: approving an uncounted line.
        """
        return self._apply(
            session_id,
            performed_by,
            "variance_approval_set",
            lambda current: lifecycle.set_approval(current, material_id, approved),
            material_id=material_id,
        )

    def approve_all_variances(self, session_id: UUID, performed_by: str) -> CountSession:
        """Approve every variant line in one save."""
        changed: list[int] = []

        def change(current: CountSession) -> CountSession:
            updated, count = lifecycle.approve_all_variances(current)
            changed.append(count)
            return updated

        return self._apply(
            session_id, performed_by, "variances_bulk_approved", change,
            approved_count=lambda: changed[0] if changed else 0,
        )

    def check_gate(self, session_id: UUID) -> ApprovalGateResult:
        """Evaluate the approval gate without posting."""
        current = self._store.get(session_id)
        return evaluate_gate(
            current.items,
            reason_threshold_percent=self._config.reason_required_above_percent,
        )

    # =========================================================================
    # Posting
    # =========================================================================

    def post(self, session_id: UUID, performed_by: str) -> PostingResult:
        """
        REVIEW -> POSTED, applying every approved variance atomically.

        Postconditions:
            - On POSTED: one ledger entry per variant line; each material's
              on-hand moved by exactly its variance; session POSTED.
            - Otherwise: nothing changed.

        Raises:
            AlreadyPostedError: the session is already POSTED.
            InvalidTransitionError: the session is not in REVIEW.
        """
        with LogContext.bind(session_id=str(session_id), actor=performed_by):
            try:
                current = self._store.get(session_id)
                lifecycle.require_transition(current, POST)

                gate = evaluate_gate(
                    current.items,
                    reason_threshold_percent=self._config.reason_required_above_percent,
                )
                if not gate.passed:
                    self._session.rollback()
                    return self._gate_blocked(session_id, gate)

                summary = self._poster.post(current, performed_by)
                self._session.commit()
            except (PostingConflictError, OptimisticLockError) as exc:
                self._session.rollback()
                logger.warning(
                    "count_session_post_conflict",
                    extra={"session_id": str(session_id), "error_code": exc.code},
                )
                blocking = (
                    (UUID(exc.material_id),) if isinstance(exc, PostingConflictError) else ()
                )
                return PostingResult(
                    status=PostingStatus.CONFLICT,
                    session_id=session_id,
                    blocking_material_ids=blocking,
                    message=str(exc),
                )
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "count_session_posted",
                extra={
                    "session_id": str(session_id),
                    "entry_count": len(summary.entries),
                    "total_positive_value": str(summary.total_positive_value),
                    "total_negative_value": str(summary.total_negative_value),
                },
            )
        return PostingResult(
            status=PostingStatus.POSTED,
            session_id=session_id,
            ledger_entry_ids=tuple(entry.id for entry in summary.entries),
            summary=summary,
            gate=gate,
        )

    def _gate_blocked(self, session_id: UUID, gate: ApprovalGateResult) -> PostingResult:
        error = gate.first_error
        if isinstance(error, UnapprovedVariancesError):
            status = PostingStatus.UNAPPROVED_VARIANCES
            blocking = gate.unapproved_material_ids
        else:
            status = PostingStatus.MISSING_REASONS
            blocking = gate.missing_reason_material_ids
        logger.info(
            "count_session_post_blocked",
            extra={
                "session_id": str(session_id),
                "status": status.value,
                "blocking_count": len(blocking),
            },
        )
        return PostingResult(
            status=status,
            session_id=session_id,
            gate=gate,
            blocking_material_ids=blocking,
            message=str(error),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_session(self, session_id: UUID) -> CountSession:
        return self._store.get(session_id)

    def list_sessions(
        self,
        status: SessionStatus | None = None,
        limit: int | None = None,
    ) -> list[CountSession]:
        return self._store.list_sessions(status=status, limit=limit)

    def stats(self, session_id: UUID) -> CountStats:
        return compute_count_stats(self._store.get(session_id).items)

    def ledger_entries(self, session_id: UUID) -> list[LedgerEntry]:
        """Ledger entries written by posting ``session_id``."""
        rows = self._session.scalars(
            select(InventoryLedgerEntryModel)
            .where(InventoryLedgerEntryModel.session_id == session_id)
            .order_by(InventoryLedgerEntryModel.idempotency_key)
        )
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply(
        self,
        session_id: UUID,
        performed_by: str,
        event: str,
        change: Callable[[CountSession], CountSession],
        material_id: UUID | None = None,
        **log_fields,
    ) -> CountSession:
        """Load, apply one pure step, save, commit."""
        with LogContext.bind(
            session_id=str(session_id),
            actor=performed_by,
            material_id=str(material_id) if material_id else None,
        ):
            try:
                current = self._store.get(session_id)
                saved = self._store.save(change(current), performed_by)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            extra = {
                "session_id": str(session_id),
                "status": saved.status.value,
                "version": saved.version,
            }
            if material_id is not None:
                extra["material_id"] = str(material_id)
            for key, value in log_fields.items():
                extra[key] = value() if callable(value) else value
            logger.info(event, extra=extra)
        return saved
