"""
PropRecon - Proration Tests

Unit tests for prorating mid-term lease rent to a calendar month.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from proprecon.models.booking import MidTermBooking
from proprecon.services.proration import (
    days_in_month,
    month_bounds,
    month_start,
    prorate_mid_term_booking,
)


def lease(start, end, rent="3000.00"):
    return MidTermBooking(
        id=uuid4(),
        property_id=uuid4(),
        tenant_name="Morgan Reyes",
        start_date=start,
        end_date=end,
        monthly_rent=Decimal(rent),
        status="active",
    )


class TestMonthBounds:
    """Calendar helpers."""

    def test_month_start(self):
        assert month_start(date(2025, 2, 17)) == date(2025, 2, 1)

    def test_bounds_leap_february(self):
        assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_days_in_month(self):
        assert days_in_month(date(2025, 4, 1)) == 30
        assert days_in_month(date(2025, 2, 1)) == 28


class TestProration:
    """Lease rent allocated to the days it covers."""

    def test_full_month_is_exact_rent(self):
        """A lease covering the whole month contributes exactly the rent."""
        prorated = prorate_mid_term_booking(
            lease(date(2024, 12, 15), date(2025, 3, 15), rent="3333.33"),
            date(2025, 1, 1),
        )

        assert prorated.days_in_booking == 31
        assert prorated.is_full_month
        assert prorated.amount == Decimal("3333.33")

    def test_half_of_thirty_day_month(self):
        """15 inclusive days of a 30-day month contribute rent * 15/30."""
        prorated = prorate_mid_term_booking(
            lease(date(2025, 4, 16), date(2025, 5, 31)),
            date(2025, 4, 1),
        )

        assert prorated.effective_start == date(2025, 4, 16)
        assert prorated.effective_end == date(2025, 4, 30)
        assert prorated.days_in_booking == 15
        assert prorated.days_in_month == 30
        assert prorated.amount == Decimal("1500.00")

    def test_start_and_end_inside_month(self):
        prorated = prorate_mid_term_booking(
            lease(date(2025, 1, 10), date(2025, 1, 20), rent="3100.00"),
            date(2025, 1, 1),
        )

        # 11 inclusive days of 31
        assert prorated.days_in_booking == 11
        assert prorated.amount == Decimal("1100.00")

    def test_amount_rounds_half_up_to_cents(self):
        prorated = prorate_mid_term_booking(
            lease(date(2025, 1, 1), date(2025, 1, 10), rent="1000.00"),
            date(2025, 1, 1),
        )

        # 1000 * 10 / 31 = 322.580645...
        assert prorated.amount == Decimal("322.58")

    def test_lease_outside_month_returns_none(self):
        assert prorate_mid_term_booking(
            lease(date(2025, 3, 1), date(2025, 5, 31)),
            date(2025, 1, 1),
        ) is None

    def test_inverted_dates_are_skipped(self):
        assert prorate_mid_term_booking(
            lease(date(2025, 1, 20), date(2025, 1, 10)),
            date(2025, 1, 1),
        ) is None

    @pytest.mark.parametrize("rent", ["0.00", "-500.00"])
    def test_non_positive_rent_is_skipped(self, rent):
        assert prorate_mid_term_booking(
            lease(date(2025, 1, 1), date(2025, 1, 31), rent=rent),
            date(2025, 1, 1),
        ) is None
