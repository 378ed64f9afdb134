"""
Count Session Lifecycle (``recon_modules.cycle_count.lifecycle``).

Responsibility
--------------
Pure state-transition and line-edit functions over the ``CountSession``
aggregate.  Every function takes a session and returns a new one; nothing is
persisted here.  Transitions are looked up in ``COUNT_SESSION_WORKFLOW``.

Architecture
------------
Layer: **Modules** -- pure functional core.  No session, no clock (callers
pass ``now``), no I/O.  ``CycleCountService`` loads, applies one of these
functions, and saves.

Invariants
----------
- Status moves only along workflow transitions; POSTED and CANCELLED are
  terminal.
- The line set is fixed when the session leaves DRAFT.
- Counts are entered only in COUNTING; reasons, notes and approvals change
  in COUNTING or REVIEW.
- Changing a line's counted quantity clears its approval.
- Approval can only be set on a counted line.

Failure Modes
-------------
- ``EmptySelectionError`` starting a count with no materials.
- ``InvalidTransitionError`` for an action not defined from the current state.
- ``AlreadyPostedError`` posting a POSTED session.
- ``SessionFrozenError`` editing lines outside the allowed states.
- ``ItemNotInSessionError`` / ``ItemNotCountedError`` / ``InvalidQuantityError``
  / ``InvalidReasonCodeError``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from recon_engines.approval import is_variant
from recon_engines.variance import compute_variance
from recon_kernel.db.types import QUANTITY_DECIMAL_PLACES, QUANTITY_QUANTUM, to_decimal
from recon_kernel.exceptions import (
    AlreadyPostedError,
    EmptySelectionError,
    InvalidQuantityError,
    InvalidReasonCodeError,
    InvalidTransitionError,
    ItemNotCountedError,
    ItemNotInSessionError,
    SessionFrozenError,
)
from recon_kernel.domain.workflow import Transition
from recon_modules.cycle_count.models import (
    CountItem,
    CountSession,
    Material,
    ReasonCode,
    SessionStatus,
)
from recon_modules.cycle_count.workflows import (
    CANCEL,
    COUNT_ENTRY_STATES,
    COUNT_SESSION_WORKFLOW,
    LINE_EDIT_STATES,
    POST,
    RETURN_TO_COUNTING,
    START_COUNTING,
    SUBMIT_FOR_REVIEW,
)


def require_transition(session: CountSession, action: str) -> Transition:
    """Return the workflow transition for ``action`` or raise."""
    if action == POST and session.status is SessionStatus.POSTED:
        raise AlreadyPostedError(str(session.id))
    transition = COUNT_SESSION_WORKFLOW.find_transition(session.status.value, action)
    if transition is None:
        raise InvalidTransitionError(str(session.id), session.status.value, action)
    return transition


def _advance(session: CountSession, action: str, **changes) -> CountSession:
    transition = require_transition(session, action)
    return replace(session, status=SessionStatus(transition.to_state), **changes)


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------


def start_counting(
    session: CountSession,
    materials: Sequence[Material],
    now: datetime,
) -> CountSession:
    """
    DRAFT -> COUNTING.  Materializes one line per material, snapshotting
    ``on_hand_quantity`` and ``unit_price``.  Duplicate materials collapse to
    their first occurrence.
    """
    require_transition(session, START_COUNTING)
    if not materials:
        raise EmptySelectionError(str(session.id))

    seen: set[UUID] = set()
    items: list[CountItem] = []
    for material in materials:
        if material.id in seen:
            continue
        seen.add(material.id)
        items.append(CountItem.from_material(len(items) + 1, material))

    return _advance(session, START_COUNTING, items=tuple(items), started_at=now)


def submit_for_review(session: CountSession) -> CountSession:
    """COUNTING -> REVIEW.  Partial counts are allowed."""
    return _advance(session, SUBMIT_FOR_REVIEW)


def return_to_counting(session: CountSession) -> CountSession:
    """REVIEW -> COUNTING.  Approvals are kept."""
    return _advance(session, RETURN_TO_COUNTING)


def cancel(session: CountSession, now: datetime) -> CountSession:
    """Any non-terminal state -> CANCELLED."""
    return _advance(session, CANCEL, cancelled_at=now)


def mark_posted(session: CountSession, now: datetime, posted_by: str) -> CountSession:
    """REVIEW -> POSTED.  Only the posting engine's caller uses this."""
    return _advance(session, POST, completed_at=now, posted_by=posted_by)


# -----------------------------------------------------------------------------
# Line edits
# -----------------------------------------------------------------------------


def _require_status(
    session: CountSession,
    allowed: frozenset[SessionStatus],
    operation: str,
) -> None:
    if session.status not in allowed:
        raise SessionFrozenError(str(session.id), session.status.value, operation)


def _replace_item(session: CountSession, material_id: UUID, **changes) -> CountSession:
    found = False
    items = []
    for item in session.items:
        if item.material_id == material_id:
            item = replace(item, **changes)
            found = True
        items.append(item)
    if not found:
        raise ItemNotInSessionError(str(session.id), str(material_id))
    return replace(session, items=tuple(items))


def _get_item(session: CountSession, material_id: UUID) -> CountItem:
    item = session.item_for(material_id)
    if item is None:
        raise ItemNotInSessionError(str(session.id), str(material_id))
    return item


def record_count(
    session: CountSession,
    material_id: UUID,
    counted_quantity: Decimal | int | str,
    performed_by: str,
    now: datetime,
    clear_approval: bool = True,
) -> CountSession:
    """
    Enter a physical count for one line and recompute its variance.

    When the quantity differs from the previous count and ``clear_approval``
    is set, the line's approval is cleared.
    """
    _require_status(session, COUNT_ENTRY_STATES, "record_count")
    item = _get_item(session, material_id)

    try:
        quantity = to_decimal(counted_quantity)
    except (ArithmeticError, TypeError, ValueError):
        raise InvalidQuantityError(str(material_id), str(counted_quantity))
    if not quantity.is_finite() or quantity < 0:
        raise InvalidQuantityError(str(material_id), str(counted_quantity))
    try:
        stored = quantity.quantize(QUANTITY_QUANTUM)
    except ArithmeticError:
        raise InvalidQuantityError(str(material_id), str(counted_quantity), "too large")
    if stored != quantity:
        raise InvalidQuantityError(
            str(material_id),
            str(counted_quantity),
            f"more than {QUANTITY_DECIMAL_PLACES} decimal places",
        )
    quantity = stored

    result = compute_variance(item.system_quantity, quantity)
    approved = item.approved
    if clear_approval and item.counted_quantity != quantity:
        approved = False
    if not result.has_variance:
        approved = False

    return _replace_item(
        session,
        material_id,
        counted_quantity=quantity,
        variance=result.variance,
        variance_percent=result.variance_percent,
        approved=approved,
        counted_at=now,
        counted_by=performed_by,
    )


def clear_count(session: CountSession, material_id: UUID) -> CountSession:
    """Reset a line to uncounted; variance goes to zero and approval clears."""
    _require_status(session, COUNT_ENTRY_STATES, "clear_count")
    _get_item(session, material_id)
    return _replace_item(
        session,
        material_id,
        counted_quantity=None,
        variance=Decimal("0"),
        variance_percent=0,
        approved=False,
        counted_at=None,
        counted_by=None,
    )


def set_reason(
    session: CountSession,
    material_id: UUID,
    reason_code: ReasonCode | str | None,
) -> CountSession:
    """
    Set or clear a line's variance reason.  ``None`` and ``""`` both clear it.

    Raises:
        InvalidReasonCodeError: a string that is not a ``ReasonCode`` value.
    """
    _require_status(session, LINE_EDIT_STATES, "set_reason")
    _get_item(session, material_id)
    if not reason_code:
        reason_code = None
    elif not isinstance(reason_code, ReasonCode):
        try:
            reason_code = ReasonCode(reason_code)
        except ValueError:
            raise InvalidReasonCodeError(
                str(material_id), str(reason_code), [code.value for code in ReasonCode]
            )
    return _replace_item(session, material_id, reason_code=reason_code)


def set_notes(session: CountSession, material_id: UUID, notes: str) -> CountSession:
    _require_status(session, LINE_EDIT_STATES, "set_notes")
    _get_item(session, material_id)
    return _replace_item(session, material_id, notes=notes or "")


def set_approval(session: CountSession, material_id: UUID, approved: bool) -> CountSession:
    """
    Approve or un-approve one line.

    Raises:
        ItemNotCountedError: approving a line that has no count.
    """
    _require_status(session, LINE_EDIT_STATES, "set_approval")
    item = _get_item(session, material_id)
    if approved and not item.is_counted:
        raise ItemNotCountedError(str(session.id), str(material_id))
    return _replace_item(session, material_id, approved=bool(approved))


def approve_all_variances(session: CountSession) -> tuple[CountSession, int]:
    """
    Approve every variant line in one batch.

    Reason requirements are untouched; the gate still checks them.

    Returns:
        (new session, number of lines whose approval changed)
    """
    _require_status(session, LINE_EDIT_STATES, "approve_all_variances")
    changed = 0
    items = []
    for item in session.items:
        if is_variant(item) and not item.approved:
            item = replace(item, approved=True)
            changed += 1
        items.append(item)
    return replace(session, items=tuple(items)), changed
