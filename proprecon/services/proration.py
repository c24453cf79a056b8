"""
PropRecon - Mid-Term Proration

Allocates a lease's fixed monthly rent to the part of a calendar month it
covers. Day counts are inclusive of both the first and the last day.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from proprecon.models.booking import MidTermBooking
from proprecon.utils.money import to_decimal, to_money

logger = logging.getLogger(__name__)


def month_start(value: date) -> date:
    """First day of the month containing `value`."""
    return value.replace(day=1)


def month_bounds(month: date) -> Tuple[date, date]:
    """First and last day of the calendar month containing `month`."""
    first = month_start(month)
    days = calendar.monthrange(first.year, first.month)[1]
    return first, first.replace(day=days)


def days_in_month(month: date) -> int:
    return calendar.monthrange(month.year, month.month)[1]


@dataclass(frozen=True)
class ProratedLease:
    """A lease clipped to one month."""
    booking: MidTermBooking
    effective_start: date
    effective_end: date
    days_in_booking: int
    days_in_month: int
    amount: Decimal

    @property
    def is_full_month(self) -> bool:
        return self.days_in_booking == self.days_in_month


def prorate_mid_term_booking(booking: MidTermBooking, month: date) -> Optional[ProratedLease]:
    """
    Prorate a lease's monthly rent to `month`.

    effective_start = max(start_date, month_start)
    effective_end = min(end_date, month_end)
    amount = monthly_rent * days_in_booking / days_in_month

    Rent is multiplied before dividing so a lease covering the whole month
    yields exactly monthly_rent.

    Returns None when the lease does not intersect the month, or when its
    data cannot be prorated (missing or inverted dates, non-positive rent);
    the latter is logged and never turned into negative revenue.
    """
    first, last = month_bounds(month)

    if booking.start_date is None or booking.end_date is None:
        logger.warning(
            f"Skipping mid-term booking {booking.id}: missing start or end date"
        )
        return None

    if booking.end_date < booking.start_date:
        logger.warning(
            f"Skipping mid-term booking {booking.id}: end date {booking.end_date} "
            f"is before start date {booking.start_date}"
        )
        return None

    effective_start = max(booking.start_date, first)
    effective_end = min(booking.end_date, last)
    days_in_booking = (effective_end - effective_start).days + 1

    if days_in_booking <= 0:
        # Lease lies entirely outside the month
        return None

    rent = to_decimal(booking.monthly_rent)
    if rent <= 0:
        logger.warning(
            f"Skipping mid-term booking {booking.id}: non-positive monthly rent {rent}"
        )
        return None

    month_days = days_in_month(first)
    amount = to_money(rent * days_in_booking / month_days)

    return ProratedLease(
        booking=booking,
        effective_start=effective_start,
        effective_end=effective_end,
        days_in_booking=days_in_booking,
        days_in_month=month_days,
        amount=amount,
    )
