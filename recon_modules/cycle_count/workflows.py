"""
Cycle Count Workflows.

State machine for the count session lifecycle:

    draft --start_counting--> counting --submit_for_review--> review --post--> posted
      |                          |          <--return_to_counting--   |
      +------------cancel--------+-------------cancel----------------+--> cancelled

``posted`` and ``cancelled`` are terminal.
"""

from recon_kernel.domain.workflow import Guard, Transition, Workflow
from recon_kernel.logging_config import get_logger
from recon_modules.cycle_count.models import SessionStatus

logger = get_logger("modules.cycle_count.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ITEMS_SELECTED = Guard(
    name="items_selected",
    description="At least one material is selected for counting",
)

APPROVAL_GATE_PASSED = Guard(
    name="approval_gate_passed",
    description="Every variance is approved and variances above the reason "
    "threshold carry a reason code",
)


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

START_COUNTING = "start_counting"
SUBMIT_FOR_REVIEW = "submit_for_review"
RETURN_TO_COUNTING = "return_to_counting"
POST = "post"
CANCEL = "cancel"

_DRAFT = SessionStatus.DRAFT.value
_COUNTING = SessionStatus.COUNTING.value
_REVIEW = SessionStatus.REVIEW.value
_POSTED = SessionStatus.POSTED.value
_CANCELLED = SessionStatus.CANCELLED.value


# -----------------------------------------------------------------------------
# Count Session Workflow
# -----------------------------------------------------------------------------

COUNT_SESSION_WORKFLOW = Workflow(
    name="cycle_count_session",
    description="Inventory cycle count: select, count, review, post",
    initial_state=_DRAFT,
    states=(_DRAFT, _COUNTING, _REVIEW, _POSTED, _CANCELLED),
    transitions=(
        Transition(_DRAFT, _COUNTING, action=START_COUNTING, guard=ITEMS_SELECTED),
        Transition(_COUNTING, _REVIEW, action=SUBMIT_FOR_REVIEW),
        Transition(_REVIEW, _COUNTING, action=RETURN_TO_COUNTING),
        Transition(
            _REVIEW,
            _POSTED,
            action=POST,
            guard=APPROVAL_GATE_PASSED,
            posts_entry=True,
        ),
        Transition(_DRAFT, _CANCELLED, action=CANCEL),
        Transition(_COUNTING, _CANCELLED, action=CANCEL),
        Transition(_REVIEW, _CANCELLED, action=CANCEL),
    ),
    terminal_states=(_POSTED, _CANCELLED),
)

# States in which per-line fields may change.
COUNT_ENTRY_STATES = frozenset({SessionStatus.COUNTING})
LINE_EDIT_STATES = frozenset({SessionStatus.COUNTING, SessionStatus.REVIEW})

logger.debug(
    "cycle_count_workflow_defined",
    extra={
        "workflow": COUNT_SESSION_WORKFLOW.name,
        "transitions": len(COUNT_SESSION_WORKFLOW.transitions),
    },
)
