"""
Model factories for tests.

Plain constructors with sensible January 2025 defaults; pass keyword
overrides for the fields a test cares about.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from proprecon.models.booking import MidTermBooking, ShortTermBooking


def make_short_term_booking(property_id, **overrides) -> ShortTermBooking:
    values = dict(
        id=uuid4(),
        property_id=property_id,
        guest_name="Jordan Ellis",
        listing_name="Lakeview Cottage",
        check_in=date(2025, 1, 5),
        check_out=date(2025, 1, 10),
        total_amount=Decimal("1000.00"),
        accommodation_revenue=Decimal("1000.00"),
        cleaning_fee=None,
        pet_fee=None,
    )
    values.update(overrides)
    return ShortTermBooking(**values)


def make_mid_term_booking(property_id, **overrides) -> MidTermBooking:
    values = dict(
        id=uuid4(),
        property_id=property_id,
        tenant_name="Morgan Reyes",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 31),
        monthly_rent=Decimal("3000.00"),
        status="active",
    )
    values.update(overrides)
    return MidTermBooking(**values)
