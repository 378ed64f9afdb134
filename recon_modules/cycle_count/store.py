"""
CountSessionStore -- durable storage for the count session aggregate.

Responsibility:
    Create, fetch, save and list ``CountSession`` aggregates (header plus
    lines), and perform the conditional REVIEW -> POSTED claim used by the
    posting engine.

Architecture position:
    Modules > Cycle Count.  Works inside the caller's transaction: flushes,
    never commits.  ``CycleCountService`` owns commit/rollback.

Invariants enforced:
    - Every save is checked against the header ``version`` the caller read;
      a moved version is an ``OptimisticLockError``, never a silent overwrite.
    - Reads bypass the identity map so a save never builds on stale state.
    - The posting claim succeeds for at most one caller per session.

Failure modes:
    - SessionNotFoundError for unknown ids.
    - OptimisticLockError on a version mismatch.
    - AlreadyPostedError when the claim finds the session already posted.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from recon_kernel.exceptions import (
    AlreadyPostedError,
    OptimisticLockError,
    SessionNotFoundError,
)
from recon_kernel.logging_config import get_logger
from recon_modules.cycle_count.models import CountSession, SessionStatus
from recon_modules.cycle_count.orm import CountItemModel, CountSessionModel

logger = get_logger("modules.cycle_count.store")

_UPDATABLE_HEADER_FIELDS = frozenset({"name", "notes"})


class CountSessionStore:
    """SQLAlchemy-backed store for count sessions."""

    def __init__(self, session: Session):
        self._session = session

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create(self, count_session: CountSession) -> UUID:
        """Persist a new session and return its assigned id."""
        model = CountSessionModel.from_dto(count_session)
        self._session.add(model)
        self._session.flush()
        logger.debug(
            "count_session_stored",
            extra={"session_id": str(model.id), "session_number": model.session_number},
        )
        return model.id

    def get(self, session_id: UUID) -> CountSession:
        return self._load(session_id).to_dto()

    def list_sessions(
        self,
        status: SessionStatus | None = None,
        limit: int | None = None,
    ) -> list[CountSession]:
        """Sessions newest first, optionally filtered by status."""
        stmt = select(CountSessionModel).execution_options(populate_existing=True)
        if status is not None:
            stmt = stmt.where(CountSessionModel.status == status.value)
        stmt = stmt.order_by(
            CountSessionModel.created_at.desc(),
            CountSessionModel.session_number.desc(),
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [model.to_dto() for model in self._session.scalars(stmt)]

    def _load(self, session_id: UUID, lock: bool = False) -> CountSessionModel:
        stmt = (
            select(CountSessionModel)
            .where(CountSessionModel.id == session_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        model = self._session.scalars(stmt).one_or_none()
        if model is None:
            raise SessionNotFoundError(str(session_id))
        return model

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, count_session: CountSession, performed_by: str) -> CountSession:
        """
        Write the aggregate back, header and lines.

        Returns:
            The stored aggregate with its new ``version``.

        Raises:
            OptimisticLockError: the stored version is not
                ``count_session.version``.
        """
        model = self._load(count_session.id)
        self._check_version(model, count_session.version)

        model.status = count_session.status.value
        model.name = count_session.name
        model.notes = count_session.notes
        model.started_at = count_session.started_at
        model.completed_at = count_session.completed_at
        model.cancelled_at = count_session.cancelled_at
        model.posted_by = count_session.posted_by
        model.total_items = count_session.total_items
        model.counted_items = count_session.counted_items
        model.variance_count = count_session.variance_count
        model.updated_by = performed_by
        model.version = count_session.version + 1

        self._sync_items(model, count_session, performed_by)
        self._flush(model)
        return model.to_dto()

    def update(
        self,
        session_id: UUID,
        performed_by: str,
        expected_version: int | None = None,
        **fields,
    ) -> CountSession:
        """
        Partial header update (``name``, ``notes``).

        Raises:
            ValueError: for any other field.
        """
        unknown = sorted(set(fields) - _UPDATABLE_HEADER_FIELDS)
        if unknown:
            raise ValueError(f"Count session fields not updatable: {unknown}")
        model = self._load(session_id)
        if expected_version is not None:
            self._check_version(model, expected_version)
        for key, value in fields.items():
            setattr(model, key, value)
        model.updated_by = performed_by
        model.version = model.version + 1
        self._flush(model)
        return model.to_dto()

    def claim_for_posting(self, posted: CountSession, expected_version: int) -> int:
        """
        Conditionally move the header from REVIEW to POSTED.

        A single UPDATE ... WHERE status = 'review' AND version = :expected.
        Exactly one concurrent caller can match; the rest see zero rows.

        Returns:
            The new header version.
        """
        result = self._session.execute(
            update(CountSessionModel)
            .where(
                CountSessionModel.id == posted.id,
                CountSessionModel.status == SessionStatus.REVIEW.value,
                CountSessionModel.version == expected_version,
            )
            .values(
                status=SessionStatus.POSTED.value,
                completed_at=posted.completed_at,
                posted_by=posted.posted_by,
                updated_by=posted.posted_by,
                counted_items=posted.counted_items,
                variance_count=posted.variance_count,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return expected_version + 1

        current = self._session.scalar(
            select(CountSessionModel.status).where(CountSessionModel.id == posted.id)
        )
        if current is None:
            raise SessionNotFoundError(str(posted.id))
        if current == SessionStatus.POSTED.value:
            raise AlreadyPostedError(str(posted.id))
        raise OptimisticLockError("CountSession", str(posted.id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_version(self, model: CountSessionModel, expected: int) -> None:
        if model.version != expected:
            logger.info(
                "count_session_version_mismatch",
                extra={
                    "session_id": str(model.id),
                    "expected_version": expected,
                    "stored_version": model.version,
                },
            )
            raise OptimisticLockError("CountSession", str(model.id))

    def _sync_items(
        self,
        model: CountSessionModel,
        count_session: CountSession,
        performed_by: str,
    ) -> None:
        if not model.items:
            for item in count_session.items:
                model.items.append(CountItemModel.from_dto(item, created_by=performed_by))
            return

        by_material = {row.material_id: row for row in model.items}
        incoming = {item.material_id for item in count_session.items}
        if incoming != set(by_material):
            raise ValueError(
                f"Count session {count_session.id}: line set cannot change after "
                "counting has started"
            )
        for item in count_session.items:
            row = by_material[item.material_id]
            row.apply_dto(item)
            if self._session.is_modified(row):
                row.updated_by = performed_by

    def _flush(self, model: CountSessionModel) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("CountSession", str(model.id)) from exc
