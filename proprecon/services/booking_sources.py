"""
PropRecon - Booking Source Reader

Read-only access to the facts a reconciliation is built from: short-term
channel bookings, mid-term leases, expenses and visits for one property and
one date window. Empty windows return empty lists.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from proprecon.models.booking import MidTermBooking, MidTermBookingStatus, ShortTermBooking
from proprecon.models.expense import Expense, Visit
from proprecon.utils.error_handling import UpstreamUnavailableException

logger = logging.getLogger(__name__)


@dataclass
class BookingSources:
    """Both booking feeds for one property and month."""
    short_term: List[ShortTermBooking] = field(default_factory=list)
    mid_term: List[MidTermBooking] = field(default_factory=list)

    @property
    def has_mid_term(self) -> bool:
        return len(self.mid_term) > 0


@dataclass
class CostSources:
    """Expenses and visits dated within the month."""
    expenses: List[Expense] = field(default_factory=list)
    visits: List[Visit] = field(default_factory=list)


class BookingSourceReader:
    """Queries the booking, expense and visit tables. Never writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _fetch_all(self, query, source: str) -> list:
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise UpstreamUnavailableException(source, original_error=e) from e
        return list(result.scalars().all())

    async def get_short_term_bookings(
        self,
        property_id: uuid.UUID,
        window_start: date,
        window_end: date,
    ) -> List[ShortTermBooking]:
        """Bookings whose check-in falls inside the window."""
        query = (
            select(ShortTermBooking)
            .where(ShortTermBooking.property_id == property_id)
            .where(ShortTermBooking.check_in >= window_start)
            .where(ShortTermBooking.check_in <= window_end)
            .order_by(ShortTermBooking.check_in, ShortTermBooking.id)
        )
        return await self._fetch_all(query, "short-term bookings")

    async def get_active_mid_term_bookings(
        self,
        property_id: uuid.UUID,
        window_start: date,
        window_end: date,
    ) -> List[MidTermBooking]:
        """Active leases whose [start, end] intersects the window."""
        query = (
            select(MidTermBooking)
            .where(MidTermBooking.property_id == property_id)
            .where(MidTermBooking.status == MidTermBookingStatus.ACTIVE.value)
            .where(MidTermBooking.start_date <= window_end)
            .where(MidTermBooking.end_date >= window_start)
            .order_by(MidTermBooking.start_date, MidTermBooking.id)
        )
        return await self._fetch_all(query, "mid-term bookings")

    async def read_bookings(
        self,
        property_id: uuid.UUID,
        window_start: date,
        window_end: date,
    ) -> BookingSources:
        sources = BookingSources(
            short_term=await self.get_short_term_bookings(property_id, window_start, window_end),
            mid_term=await self.get_active_mid_term_bookings(property_id, window_start, window_end),
        )
        logger.debug(
            f"Property {property_id} {window_start}..{window_end}: "
            f"{len(sources.short_term)} short-term, {len(sources.mid_term)} mid-term bookings"
        )
        return sources

    async def read_costs(
        self,
        property_id: uuid.UUID,
        window_start: date,
        window_end: date,
    ) -> CostSources:
        """
        Expenses and visits dated inside the window, including ones already
        exported or billed; the line item synthesizer decides what to skip.
        """
        expenses = await self._fetch_all(
            select(Expense)
            .where(Expense.property_id == property_id)
            .where(Expense.date >= window_start)
            .where(Expense.date <= window_end)
            .order_by(Expense.date, Expense.id),
            "expenses",
        )
        visits = await self._fetch_all(
            select(Visit)
            .where(Visit.property_id == property_id)
            .where(Visit.date >= window_start)
            .where(Visit.date <= window_end)
            .order_by(Visit.date, Visit.id),
            "visits",
        )
        return CostSources(expenses=expenses, visits=visits)
