"""
Exceptions raised by the reconciliation kernel and the cycle-count module.

Each class carries a stable ``code`` string for API responses and keeps its
inputs as attributes, so handlers and the JSON log formatter never parse
messages::

    try:
        service.start_counting(session_id, material_ids, performed_by="jo")
    except EmptySelectionError as e:
        api_response(code=e.code, session=e.session_id)

Hierarchy::

    ReconKernelError
      CountValidationError      input the user can correct; state untouched
        EmptySelectionError         EMPTY_SELECTION
        UnapprovedVariancesError    UNAPPROVED_VARIANCES
        MissingReasonsError         MISSING_REASONS
        InvalidReasonCodeError      INVALID_REASON_CODE
        ItemNotCountedError         ITEM_NOT_COUNTED
        ItemNotInSessionError       ITEM_NOT_IN_SESSION
        InvalidQuantityError        INVALID_QUANTITY
      ConcurrencyError          safe to re-fetch and retry
        OptimisticLockError         OPTIMISTIC_LOCK_CONFLICT
        PostingConflictError        POSTING_CONFLICT
      WorkflowError             lifecycle misuse
        InvalidTransitionError      INVALID_TRANSITION
        SessionFrozenError          SESSION_FROZEN
        AlreadyPostedError          ALREADY_POSTED
      NotFoundError
        SessionNotFoundError        SESSION_NOT_FOUND
        MaterialNotFoundError       MATERIAL_NOT_FOUND
      ImmutabilityError
        ImmutabilityViolationError  IMMUTABILITY_VIOLATION

The approval gate and the posting engine also report validation failures
as data (``ApprovalGateResult``, ``PostingResult``); the exceptions are for
callers that prefer to raise.
"""

from collections.abc import Sequence


class ReconKernelError(Exception):
    """Root of the hierarchy. Subclasses override ``code``."""

    code: str = "RECON_KERNEL_ERROR"


# validation


class CountValidationError(ReconKernelError):
    """Rejected input. Nothing was written."""

    code: str = "COUNT_VALIDATION_ERROR"


class EmptySelectionError(CountValidationError):
    """A count was started with no materials selected."""

    code: str = "EMPTY_SELECTION"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            f"Count session {session_id} cannot start: no items selected"
        )


class UnapprovedVariancesError(CountValidationError):
    """One or more variant items have not been approved."""

    code: str = "UNAPPROVED_VARIANCES"

    def __init__(self, count: int, material_ids: Sequence[str] = ()):
        self.count = count
        self.material_ids = tuple(material_ids)
        super().__init__(f"{count} variance(s) require approval")


class MissingReasonsError(CountValidationError):
    """Variances above the reason threshold have no reason code."""

    code: str = "MISSING_REASONS"

    def __init__(
        self,
        count: int,
        threshold_percent: int,
        material_ids: Sequence[str] = (),
    ):
        self.count = count
        self.threshold_percent = threshold_percent
        self.material_ids = tuple(material_ids)
        super().__init__(
            f"{count} variance(s) greater than {threshold_percent}% "
            "require a reason"
        )


class InvalidReasonCodeError(CountValidationError):
    """Reason code is not one of the known variance reasons."""

    code: str = "INVALID_REASON_CODE"

    def __init__(self, material_id: str, reason_code: str, allowed: Sequence[str] = ()):
        self.material_id = material_id
        self.reason_code = reason_code
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unknown reason code {reason_code!r} for material {material_id}"
        )


class ItemNotCountedError(CountValidationError):
    """Approval cannot be set on an item that has not been counted."""

    code: str = "ITEM_NOT_COUNTED"

    def __init__(self, session_id: str, material_id: str):
        self.session_id = session_id
        self.material_id = material_id
        super().__init__(
            f"Material {material_id} in session {session_id} has not been counted"
        )


class ItemNotInSessionError(CountValidationError):
    """Material is not one of the session's count lines."""

    code: str = "ITEM_NOT_IN_SESSION"

    def __init__(self, session_id: str, material_id: str):
        self.session_id = session_id
        self.material_id = material_id
        super().__init__(
            f"Material {material_id} is not part of count session {session_id}"
        )


class InvalidQuantityError(CountValidationError):
    """Counted quantity is not a valid physical count."""

    code: str = "INVALID_QUANTITY"

    def __init__(
        self,
        material_id: str,
        quantity: str,
        reason: str = "not a non-negative number",
    ):
        self.material_id = material_id
        self.quantity = quantity
        self.reason = reason
        super().__init__(
            f"Invalid counted quantity {quantity} for material {material_id}: {reason}"
        )


# concurrency


class ConcurrencyError(ReconKernelError):
    """Lost a race with another transaction."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Row version moved since it was read."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class PostingConflictError(ConcurrencyError):
    """
    Compare-and-swap retries were exhausted for a material during posting.

    The whole posting attempt is rolled back; the session stays in REVIEW.
    """

    code: str = "POSTING_CONFLICT"

    def __init__(self, material_id: str, attempts: int):
        self.material_id = material_id
        self.attempts = attempts
        super().__init__(
            f"Posting conflict on material {material_id} after {attempts} "
            "attempt(s); re-fetch and retry the posting"
        )


# workflow


class WorkflowError(ReconKernelError):
    """Operation not allowed in the session's current state."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested transition is not defined for the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, session_id: str, from_state: str, action: str):
        self.session_id = session_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Cannot {action} count session {session_id} in state {from_state}"
        )


class SessionFrozenError(WorkflowError):
    """Count lines of a terminal (or not yet counting) session cannot change."""

    code: str = "SESSION_FROZEN"

    def __init__(self, session_id: str, status: str, operation: str):
        self.session_id = session_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} on count session {session_id}: status is {status}"
        )


class AlreadyPostedError(WorkflowError):
    """Count session has already been posted to inventory."""

    code: str = "ALREADY_POSTED"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Count session {session_id} has already been posted")


# lookups


class NotFoundError(ReconKernelError):
    """Lookup by id found nothing."""

    code: str = "NOT_FOUND"


class SessionNotFoundError(NotFoundError):
    """Count session with the given ID was not found."""

    code: str = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Count session not found: {session_id}")


class MaterialNotFoundError(NotFoundError):
    """One or more materials were not found in the catalog."""

    code: str = "MATERIAL_NOT_FOUND"

    def __init__(self, material_ids: Sequence[str]):
        self.material_ids = tuple(material_ids)
        super().__init__(
            f"Material(s) not found: {', '.join(self.material_ids)}"
        )


# immutability


class ImmutabilityError(ReconKernelError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Update or delete of an append-only ledger row or a posted session."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
