"""
Tests for cycle count pure helpers: numbering, naming and statistics.
"""

import random
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from recon_engines.variance import compute_variance
from recon_modules.cycle_count.helpers import (
    SESSION_NUMBER_PATTERN,
    build_session_name,
    compute_count_stats,
    generate_session_number,
)
from recon_modules.cycle_count.models import CountItem, ScopeFilter

NOW = datetime(2024, 3, 7, 9, 30, tzinfo=timezone.utc)


class TestSessionNumber:

    def test_format(self):
        number = generate_session_number(NOW, random.Random(1))

        match = SESSION_NUMBER_PATTERN.match(number)
        assert match is not None
        assert match.group("prefix") == "CNT"
        assert match.group("date") == "240307"

    def test_seeded_rng_is_reproducible(self):
        assert generate_session_number(NOW, random.Random(5)) == generate_session_number(
            NOW, random.Random(5)
        )

    def test_suffix_is_zero_padded(self):
        class Low(random.Random):
            def randint(self, a, b):
                return 7

        assert generate_session_number(NOW, Low()) == "CNT-240307-007"

    def test_custom_prefix(self):
        assert generate_session_number(NOW, random.Random(1), prefix="CC").startswith("CC-240307-")


class TestSessionName:

    def test_department(self):
        assert build_session_name("CNT-1", ScopeFilter.department("MAINT")) == "CNT-1 - Dept MAINT"

    def test_location(self):
        assert build_session_name("CNT-1", ScopeFilter.location("A-01")) == "CNT-1 - A-01"

    def test_category(self):
        assert build_session_name("CNT-1", ScopeFilter.category("Raw")) == "CNT-1 - Raw"

    def test_all(self):
        assert build_session_name("CNT-1", ScopeFilter.all()) == "CNT-1"


def line(system, counted, price, approved=False) -> CountItem:
    counted_qty = None if counted is None else Decimal(counted)
    result = compute_variance(Decimal(system), counted_qty)
    return CountItem(
        line_number=1,
        material_id=uuid4(),
        material_number="M",
        material_name="M",
        material_sku="M",
        unit_of_measure="EA",
        system_quantity=Decimal(system),
        unit_price=Decimal(price),
        counted_quantity=counted_qty,
        variance=result.variance,
        variance_percent=result.variance_percent,
        approved=approved,
    )


class TestCountStats:

    def test_stats(self):
        stats = compute_count_stats([
            line("10", "12", "5.00", approved=True),
            line("10", "7", "2.00"),
            line("10", "10", "9.99"),
            line("10", None, "1.00"),
        ])

        assert stats.total_items == 4
        assert stats.counted_items == 3
        assert stats.variance_count == 2
        assert stats.approved_count == 1
        assert stats.total_positive_value == Decimal("10.00")
        assert stats.total_negative_value == Decimal("6.00")
        assert stats.net_adjustment_value == Decimal("4.00")

    def test_empty(self):
        stats = compute_count_stats([])

        assert stats.total_items == 0
        assert stats.total_positive_value == Decimal("0")
