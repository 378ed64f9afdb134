"""
Tests for the pure count session lifecycle functions.

No database: sessions are built in memory and every transition returns a new
frozen aggregate.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

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
from recon_modules.cycle_count import lifecycle
from recon_modules.cycle_count.models import (
    CountSession,
    Material,
    ReasonCode,
    ScopeFilter,
    SessionStatus,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def material(number: str, on_hand: str, price: str = "1.00") -> Material:
    return Material(
        id=uuid4(),
        material_number=number,
        name=f"Material {number}",
        sku=f"SKU-{number}",
        department_code="MAINT",
        unit_of_measure="EA",
        unit_price=Decimal(price),
        on_hand_quantity=Decimal(on_hand),
    )


def draft() -> CountSession:
    return CountSession(
        id=uuid4(),
        session_number="CNT-240101-001",
        name="CNT-240101-001",
        scope=ScopeFilter.all(),
        created_by="alice",
        created_at=NOW,
    )


@pytest.fixture
def materials():
    return [material("M-1", "10"), material("M-2", "3"), material("M-3", "100")]


@pytest.fixture
def counting(materials):
    return lifecycle.start_counting(draft(), materials, NOW)


class TestStartCounting:

    def test_moves_to_counting_and_snapshots(self, materials):
        session = lifecycle.start_counting(draft(), materials, NOW)

        assert session.status is SessionStatus.COUNTING
        assert session.started_at == NOW
        assert [item.line_number for item in session.items] == [1, 2, 3]
        assert [item.system_quantity for item in session.items] == [
            Decimal("10"), Decimal("3"), Decimal("100"),
        ]
        assert all(not item.is_counted for item in session.items)

    def test_snapshots_unit_price(self):
        session = lifecycle.start_counting(draft(), [material("M-9", "5", "12.75")], NOW)

        assert session.items[0].unit_price == Decimal("12.75")

    def test_empty_selection_rejected(self):
        with pytest.raises(EmptySelectionError):
            lifecycle.start_counting(draft(), [], NOW)

    def test_duplicates_collapse(self, materials):
        session = lifecycle.start_counting(draft(), materials + [materials[0]], NOW)

        assert session.total_items == 3

    def test_cannot_restart(self, counting, materials):
        with pytest.raises(InvalidTransitionError):
            lifecycle.start_counting(counting, materials, NOW)

    def test_original_is_untouched(self, materials):
        original = draft()
        lifecycle.start_counting(original, materials, NOW)

        assert original.status is SessionStatus.DRAFT
        assert original.items == ()


class TestTransitions:

    def test_submit_and_return(self, counting):
        review = lifecycle.submit_for_review(counting)
        assert review.status is SessionStatus.REVIEW

        back = lifecycle.return_to_counting(review)
        assert back.status is SessionStatus.COUNTING

    def test_partial_count_can_be_submitted(self, counting):
        assert lifecycle.submit_for_review(counting).status is SessionStatus.REVIEW

    def test_cannot_submit_draft(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.submit_for_review(draft())
        assert exc_info.value.code == "INVALID_TRANSITION"

    @pytest.mark.parametrize("status", [
        SessionStatus.DRAFT, SessionStatus.COUNTING, SessionStatus.REVIEW,
    ])
    def test_cancel_from_open_states(self, counting, status):
        from dataclasses import replace

        cancelled = lifecycle.cancel(replace(counting, status=status), NOW)

        assert cancelled.status is SessionStatus.CANCELLED
        assert cancelled.cancelled_at == NOW

    def test_cancelled_is_terminal(self, counting):
        cancelled = lifecycle.cancel(counting, NOW)

        with pytest.raises(InvalidTransitionError):
            lifecycle.cancel(cancelled, NOW)
        with pytest.raises(InvalidTransitionError):
            lifecycle.return_to_counting(cancelled)

    def test_mark_posted_requires_review(self, counting):
        with pytest.raises(InvalidTransitionError):
            lifecycle.mark_posted(counting, NOW, "bob")

    def test_mark_posted(self, counting):
        posted = lifecycle.mark_posted(lifecycle.submit_for_review(counting), NOW, "bob")

        assert posted.status is SessionStatus.POSTED
        assert posted.posted_by == "bob"
        assert posted.completed_at == NOW

    def test_posting_twice_is_already_posted(self, counting):
        posted = lifecycle.mark_posted(lifecycle.submit_for_review(counting), NOW, "bob")

        with pytest.raises(AlreadyPostedError):
            lifecycle.mark_posted(posted, NOW, "bob")


class TestRecordCount:

    def test_computes_variance(self, counting, materials):
        session = lifecycle.record_count(counting, materials[1].id, "4", "carol", NOW)
        item = session.item_for(materials[1].id)

        assert item.counted_quantity == Decimal("4")
        assert item.variance == Decimal("1")
        assert item.variance_percent == 33
        assert item.counted_by == "carol"
        assert item.counted_at == NOW

    def test_only_while_counting(self, counting, materials):
        review = lifecycle.submit_for_review(counting)

        with pytest.raises(SessionFrozenError):
            lifecycle.record_count(review, materials[0].id, "9", "carol", NOW)

    @pytest.mark.parametrize("bad", ["-1", "abc", "NaN", "Infinity"])
    def test_invalid_quantities(self, counting, materials, bad):
        with pytest.raises(InvalidQuantityError):
            lifecycle.record_count(counting, materials[0].id, bad, "carol", NOW)

    def test_float_rejected(self, counting, materials):
        with pytest.raises(InvalidQuantityError):
            lifecycle.record_count(counting, materials[0].id, 9.5, "carol", NOW)

    def test_finer_than_storage_scale_rejected(self, counting, materials):
        with pytest.raises(InvalidQuantityError, match="decimal places"):
            lifecycle.record_count(counting, materials[1].id, "0.0000000015", "carol", NOW)

    def test_trailing_zeros_beyond_scale_accepted(self, counting, materials):
        mid = materials[1].id
        session = lifecycle.record_count(counting, mid, "1.0000000000", "carol", NOW)

        item = session.item_for(mid)
        assert item.counted_quantity == Decimal("1")
        assert item.variance == Decimal("-2")

    def test_oversized_count_rejected(self, counting, materials):
        with pytest.raises(InvalidQuantityError, match="too large"):
            lifecycle.record_count(counting, materials[0].id, "1" + "0" * 30, "carol", NOW)

    def test_zero_count_allowed(self, counting, materials):
        session = lifecycle.record_count(counting, materials[0].id, 0, "carol", NOW)

        assert session.item_for(materials[0].id).variance_percent == -100

    def test_unknown_material(self, counting):
        with pytest.raises(ItemNotInSessionError):
            lifecycle.record_count(counting, uuid4(), "1", "carol", NOW)

    def test_changed_count_clears_approval(self, counting, materials):
        mid = materials[0].id
        session = lifecycle.record_count(counting, mid, "9", "carol", NOW)
        session = lifecycle.set_approval(session, mid, True)

        recounted = lifecycle.record_count(session, mid, "8", "carol", NOW)

        assert recounted.item_for(mid).approved is False

    def test_same_count_keeps_approval(self, counting, materials):
        mid = materials[0].id
        session = lifecycle.record_count(counting, mid, "9", "carol", NOW)
        session = lifecycle.set_approval(session, mid, True)

        recounted = lifecycle.record_count(session, mid, Decimal("9.0"), "carol", NOW)

        assert recounted.item_for(mid).approved is True

    def test_keep_approval_when_disabled(self, counting, materials):
        mid = materials[0].id
        session = lifecycle.record_count(counting, mid, "9", "carol", NOW)
        session = lifecycle.set_approval(session, mid, True)

        recounted = lifecycle.record_count(session, mid, "7", "carol", NOW, clear_approval=False)

        assert recounted.item_for(mid).approved is True

    def test_recount_to_match_clears_approval(self, counting, materials):
        mid = materials[0].id
        session = lifecycle.record_count(counting, mid, "9", "carol", NOW)
        session = lifecycle.set_approval(session, mid, True)

        matched = lifecycle.record_count(session, mid, "10", "carol", NOW, clear_approval=False)

        assert matched.item_for(mid).approved is False
        assert matched.item_for(mid).has_variance is False

    def test_clear_count(self, counting, materials):
        mid = materials[0].id
        session = lifecycle.record_count(counting, mid, "9", "carol", NOW + timedelta(minutes=1))

        cleared = lifecycle.clear_count(session, mid)
        item = cleared.item_for(mid)

        assert item.counted_quantity is None
        assert item.variance == Decimal("0")
        assert item.counted_by is None


class TestReviewEdits:

    def test_set_reason_accepts_string(self, counting, materials):
        session = lifecycle.set_reason(counting, materials[0].id, "damaged")

        assert session.item_for(materials[0].id).reason_code is ReasonCode.DAMAGED

    def test_unknown_reason_rejected(self, counting, materials):
        with pytest.raises(InvalidReasonCodeError) as exc_info:
            lifecycle.set_reason(counting, materials[0].id, "lost_in_space")

        assert exc_info.value.code == "INVALID_REASON_CODE"
        assert exc_info.value.reason_code == "lost_in_space"
        assert "damaged" in exc_info.value.allowed

    @pytest.mark.parametrize("cleared", ["", None])
    def test_empty_reason_clears(self, counting, materials, cleared):
        mid = materials[0].id
        session = lifecycle.set_reason(counting, mid, ReasonCode.THEFT)

        session = lifecycle.set_reason(session, mid, cleared)

        assert session.item_for(mid).reason_code is None

    def test_reason_and_notes_editable_in_review(self, counting, materials):
        mid = materials[0].id
        review = lifecycle.submit_for_review(
            lifecycle.record_count(counting, mid, "9", "carol", NOW)
        )

        review = lifecycle.set_reason(review, mid, ReasonCode.THEFT)
        review = lifecycle.set_notes(review, mid, "bin was open")

        item = review.item_for(mid)
        assert item.reason_code is ReasonCode.THEFT
        assert item.notes == "bin was open"

    def test_cannot_approve_uncounted(self, counting, materials):
        with pytest.raises(ItemNotCountedError):
            lifecycle.set_approval(counting, materials[0].id, True)

    def test_unapprove_uncounted_is_allowed(self, counting, materials):
        session = lifecycle.set_approval(counting, materials[0].id, False)

        assert session.item_for(materials[0].id).approved is False

    def test_edits_frozen_after_cancel(self, counting, materials):
        cancelled = lifecycle.cancel(counting, NOW)

        with pytest.raises(SessionFrozenError):
            lifecycle.set_reason(cancelled, materials[0].id, "damaged")
        with pytest.raises(SessionFrozenError):
            lifecycle.set_notes(cancelled, materials[0].id, "x")

    def test_approve_all_variances(self, counting, materials):
        session = lifecycle.record_count(counting, materials[0].id, "9", "carol", NOW)
        session = lifecycle.record_count(session, materials[1].id, "3", "carol", NOW)
        session = lifecycle.record_count(session, materials[2].id, "120", "carol", NOW)

        approved, changed = lifecycle.approve_all_variances(session)

        assert changed == 2
        assert approved.item_for(materials[0].id).approved is True
        assert approved.item_for(materials[1].id).approved is False  # matched
        assert approved.item_for(materials[2].id).approved is True

    def test_approve_all_is_idempotent(self, counting, materials):
        session = lifecycle.record_count(counting, materials[0].id, "9", "carol", NOW)
        session, _ = lifecycle.approve_all_variances(session)

        _, changed = lifecycle.approve_all_variances(session)

        assert changed == 0
