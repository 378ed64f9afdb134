"""
Tests for CountSessionStore: persistence of the session aggregate, version
checks and the conditional posting claim.
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from recon_kernel.exceptions import (
    AlreadyPostedError,
    OptimisticLockError,
    SessionNotFoundError,
)
from recon_modules.cycle_count import lifecycle
from recon_modules.cycle_count.models import (
    CountItem,
    CountSession,
    ScopeFilter,
    SessionStatus,
)
from recon_modules.cycle_count.store import CountSessionStore

ACTOR = "store-test"


@pytest.fixture
def store(session):
    return CountSessionStore(session)


@pytest.fixture
def draft(clock):
    return CountSession(
        session_number="CNT-240101-001",
        name="CNT-240101-001 - Dept MAINT",
        scope=ScopeFilter.department("MAINT"),
        created_by=ACTOR,
        created_at=clock.now(),
    )


@pytest.fixture
def stored_counting(store, session, draft, catalog, clock):
    """A COUNTING session with lines for the bolt and the filter."""
    session_id = store.create(draft)
    loaded = store.get(session_id)
    counting = lifecycle.start_counting(
        loaded, [catalog["bolt"], catalog["filter"]], clock.now()
    )
    saved = store.save(counting, ACTOR)
    session.commit()
    return saved


class TestCreateAndGet:

    def test_create_assigns_id(self, store, session, draft):
        session_id = store.create(draft)
        session.commit()

        loaded = store.get(session_id)
        assert loaded.id == session_id
        assert loaded.session_number == draft.session_number
        assert loaded.scope == ScopeFilter.department("MAINT")
        assert loaded.status is SessionStatus.DRAFT
        assert loaded.items == ()
        assert loaded.version == 1

    def test_get_unknown(self, store):
        with pytest.raises(SessionNotFoundError):
            store.get(uuid4())

    def test_lines_round_trip(self, stored_counting, catalog):
        assert stored_counting.status is SessionStatus.COUNTING
        assert [item.line_number for item in stored_counting.items] == [1, 2]
        bolt = stored_counting.item_for(catalog["bolt"].id)
        assert bolt.system_quantity == Decimal("100")
        assert bolt.unit_price == Decimal("2.50")
        assert bolt.counted_quantity is None


class TestSave:

    def test_save_bumps_version(self, stored_counting):
        assert stored_counting.version == 2

    def test_save_persists_line_changes(self, store, session, stored_counting, catalog, clock):
        updated = lifecycle.record_count(
            stored_counting, catalog["bolt"].id, Decimal("97"), ACTOR, clock.now()
        )
        store.save(updated, ACTOR)
        session.commit()

        bolt = store.get(stored_counting.id).item_for(catalog["bolt"].id)
        assert bolt.counted_quantity == Decimal("97")
        assert bolt.variance == Decimal("-3")
        assert bolt.variance_percent == -3
        assert bolt.counted_by == ACTOR

    def test_stale_version_is_rejected(self, store, session, stored_counting, catalog, clock):
        first = lifecycle.record_count(
            stored_counting, catalog["bolt"].id, Decimal("97"), ACTOR, clock.now()
        )
        second = lifecycle.record_count(
            stored_counting, catalog["bolt"].id, Decimal("120"), "other", clock.now()
        )
        store.save(first, ACTOR)
        session.commit()

        with pytest.raises(OptimisticLockError) as exc_info:
            store.save(second, "other")
        session.rollback()

        assert exc_info.value.entity_type == "CountSession"
        bolt = store.get(stored_counting.id).item_for(catalog["bolt"].id)
        assert bolt.counted_quantity == Decimal("97")

    def test_line_set_cannot_change(self, store, session, stored_counting, catalog):
        extra = CountItem.from_material(3, catalog["grease"])
        grown = replace(stored_counting, items=stored_counting.items + (extra,))

        with pytest.raises(ValueError, match="line set"):
            store.save(grown, ACTOR)
        session.rollback()


class TestUpdate:

    def test_updates_name_and_notes(self, store, session, stored_counting):
        updated = store.update(stored_counting.id, ACTOR, name="Aisle A", notes="night shift")
        session.commit()

        assert updated.name == "Aisle A"
        assert updated.notes == "night shift"
        assert updated.version == stored_counting.version + 1

    def test_rejects_other_fields(self, store, stored_counting):
        with pytest.raises(ValueError, match="not updatable"):
            store.update(stored_counting.id, ACTOR, status="posted")

    def test_expected_version_checked(self, store, session, stored_counting):
        with pytest.raises(OptimisticLockError):
            store.update(
                stored_counting.id, ACTOR,
                expected_version=stored_counting.version - 1, name="x",
            )
        session.rollback()


class TestList:

    def test_filters_by_status(self, store, session, draft, stored_counting):
        other = store.create(replace(draft, session_number="CNT-240101-002"))
        session.commit()

        drafts = store.list_sessions(status=SessionStatus.DRAFT)
        assert [s.id for s in drafts] == [other]
        assert len(store.list_sessions()) == 2
        assert len(store.list_sessions(limit=1)) == 1


class TestClaimForPosting:

    @pytest.fixture
    def review(self, store, session, stored_counting, catalog, clock):
        counted = stored_counting
        for key in ("bolt", "filter"):
            counted = lifecycle.record_count(
                counted, catalog[key].id, catalog[key].on_hand_quantity, ACTOR, clock.now()
            )
        saved = store.save(lifecycle.submit_for_review(counted), ACTOR)
        session.commit()
        return saved

    def test_claim_moves_to_posted(self, store, review, clock):
        posted = lifecycle.mark_posted(review, clock.now(), "approver")

        new_version = store.claim_for_posting(posted, expected_version=review.version)

        assert new_version == review.version + 1
        stored = store.get(review.id)
        assert stored.status is SessionStatus.POSTED
        assert stored.posted_by == "approver"
        assert stored.completed_at == clock.now()

    def test_second_claim_sees_posted(self, store, session, review, clock):
        posted = lifecycle.mark_posted(review, clock.now(), "approver")
        store.claim_for_posting(posted, expected_version=review.version)
        session.commit()

        with pytest.raises(AlreadyPostedError):
            store.claim_for_posting(posted, expected_version=review.version)

    def test_moved_version_is_lock_error(self, store, session, review, clock):
        store.update(review.id, ACTOR, notes="touched")
        session.commit()
        posted = lifecycle.mark_posted(review, clock.now(), "approver")

        with pytest.raises(OptimisticLockError):
            store.claim_for_posting(posted, expected_version=review.version)

    def test_counting_session_cannot_be_claimed(self, store, stored_counting, clock):
        posted = replace(stored_counting, status=SessionStatus.POSTED)

        with pytest.raises(OptimisticLockError):
            store.claim_for_posting(posted, expected_version=stored_counting.version)

    def test_unknown_session(self, store, review, clock):
        posted = replace(
            lifecycle.mark_posted(review, clock.now(), "approver"), id=uuid4()
        )

        with pytest.raises(SessionNotFoundError):
            store.claim_for_posting(posted, expected_version=1)
