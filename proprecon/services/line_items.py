"""
PropRecon - Line Item Synthesizer

Turns bookings, leases, expenses and visits into signed ledger rows for a
reconciliation. Every row has a natural key (item_type, item_id); a key that
is already present, or was emitted earlier in the same run, is never emitted
again, so re-running against unchanged data adds nothing.

Signs: revenue is positive, deductions negative.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, NamedTuple, Optional, Set

from proprecon.models.booking import ShortTermBooking
from proprecon.models.expense import Expense, Visit
from proprecon.models.reconciliation import LineItemType, ReconciliationLineItem
from proprecon.services.proration import ProratedLease
from proprecon.utils.money import ZERO, format_money, to_decimal, to_money

logger = logging.getLogger(__name__)


# Expenses describing a visit charge are billed through the visit ledger
VISIT_FEE_PATTERNS = (
    "visit fee",
    "visit charge",
    "hourly charge",
    "property visit",
)


class LineItemKey(NamedTuple):
    """Natural key of a line item within one reconciliation."""
    item_type: LineItemType
    item_id: str

    @classmethod
    def of(cls, item: ReconciliationLineItem) -> "LineItemKey":
        return cls(LineItemType(item.item_type), str(item.item_id))


def existing_keys(items: Iterable[ReconciliationLineItem]) -> Set[LineItemKey]:
    return {LineItemKey.of(item) for item in items}


def accommodation_revenue(booking: ShortTermBooking) -> Decimal:
    """Accommodation-only revenue, falling back to the booking total."""
    accommodation = to_decimal(booking.accommodation_revenue)
    if accommodation:
        return accommodation
    return to_decimal(booking.total_amount)


def is_visit_fee_expense(expense: Expense) -> bool:
    text = f"{expense.purpose or ''} {expense.items_detail or ''}".lower()
    return any(pattern in text for pattern in VISIT_FEE_PATTERNS)


class LineItemSynthesizer:
    """
    Builds the line items missing from one reconciliation.

    Items are returned unattached to any session; the caller persists them.
    """

    def __init__(
        self,
        reconciliation_id: uuid.UUID,
        month_start: date,
        existing: Optional[Set[LineItemKey]] = None,
        source: str = "auto",
    ):
        self.reconciliation_id = reconciliation_id
        self.month_start = month_start
        self.source = source
        self._seen: Set[LineItemKey] = set(existing or ())
        self.items: List[ReconciliationLineItem] = []

    def _emit(
        self,
        item_type: LineItemType,
        item_id: str,
        amount: Decimal,
        item_date: date,
        description: str,
        category: str,
        fee_type: Optional[str] = None,
    ) -> bool:
        key = LineItemKey(item_type, str(item_id))
        if key in self._seen:
            return False
        self._seen.add(key)

        self.items.append(ReconciliationLineItem(
            id=uuid.uuid4(),
            reconciliation_id=self.reconciliation_id,
            item_type=item_type,
            item_id=str(item_id),
            description=description[:500],
            amount=to_money(amount),
            date=item_date,
            category=category,
            fee_type=fee_type,
            verified=False,
            excluded=False,
            source=self.source,
        ))
        return True

    # ===========================================
    # REVENUE
    # ===========================================

    def add_bookings(self, bookings: Iterable[ShortTermBooking]) -> None:
        for booking in bookings:
            guest = booking.guest_name or "Guest"
            revenue = accommodation_revenue(booking)
            if revenue > 0:
                self._emit(
                    LineItemType.BOOKING,
                    str(booking.id),
                    revenue,
                    booking.check_in,
                    f"{guest} - {booking.listing_name or 'Listing'}",
                    "Short-term Booking",
                    fee_type="accommodation",
                )

            cleaning_fee = to_decimal(booking.cleaning_fee)
            if cleaning_fee > 0:
                self._emit(
                    LineItemType.PASS_THROUGH_FEE,
                    f"{booking.id}_cleaning",
                    -cleaning_fee,
                    booking.check_in,
                    f"Cleaning Fee - {guest}",
                    "Cleaning Fee",
                    fee_type="cleaning_fee",
                )

            pet_fee = to_decimal(booking.pet_fee)
            if pet_fee > 0:
                self._emit(
                    LineItemType.PASS_THROUGH_FEE,
                    f"{booking.id}_pet",
                    -pet_fee,
                    booking.check_in,
                    f"Pet Fee - {guest}",
                    "Pet Fee",
                    fee_type="pet_fee",
                )

    def add_mid_term_bookings(self, leases: Iterable[ProratedLease]) -> None:
        for lease in leases:
            if lease.amount <= 0:
                continue
            self._emit(
                LineItemType.MID_TERM_BOOKING,
                str(lease.booking.id),
                lease.amount,
                lease.effective_start,
                f"{lease.booking.tenant_name} - Mid-term Rental "
                f"({lease.days_in_booking}/{lease.days_in_month} days)",
                "Mid-term Rental",
                fee_type="mid_term_rent",
            )

    # ===========================================
    # DEDUCTIONS
    # ===========================================

    def add_expenses(self, expenses: Iterable[Expense]) -> None:
        for expense in expenses:
            if expense.exported:
                continue
            if is_visit_fee_expense(expense):
                logger.debug(f"Skipping visit-fee expense {expense.id}: {expense.purpose}")
                continue
            self._emit(
                LineItemType.EXPENSE,
                str(expense.id),
                -abs(to_decimal(expense.amount)),
                expense.date,
                expense.items_detail or expense.purpose or "Expense",
                expense.category or "General Expense",
                fee_type="expense",
            )

    def add_visits(self, visits: Iterable[Visit]) -> None:
        for visit in visits:
            if visit.billed:
                continue
            self._emit(
                LineItemType.VISIT,
                str(visit.id),
                -abs(to_decimal(visit.price)),
                visit.date,
                f"Property visit - {visit.visited_by or 'Staff'}",
                "Visit Fee",
                fee_type="visit",
            )

    def add_order_minimum(self, order_minimum_fee: Decimal, nightly_rate: Optional[Decimal]) -> None:
        """One row per reconciliation, kept even at $0 to show the tier."""
        tier = f"{format_money(nightly_rate)}/night" if nightly_rate else "No Bookings"
        self._emit(
            LineItemType.ORDER_MINIMUM,
            str(self.reconciliation_id),
            -abs(to_decimal(order_minimum_fee)),
            self.month_start,
            f"Monthly Order Minimum Fee (Rate Tier: {tier})",
            "Order Minimum Fee",
            fee_type="order_minimum",
        )


PASS_THROUGH_SUFFIXES = ("_cleaning", "_pet")


def exclude_duplicate_bookings(
    items: Iterable[ReconciliationLineItem],
    duplicate_of: Mapping[str, uuid.UUID],
) -> List[ReconciliationLineItem]:
    """
    Exclude stored booking rows (and their pass-through fees) whose booking
    now duplicates a mid-term lease. Returns the rows that changed.
    """
    changed = []
    for item in items:
        if item.excluded:
            continue
        item_type = LineItemType(item.item_type)
        booking_id = str(item.item_id)
        if item_type == LineItemType.PASS_THROUGH_FEE:
            for suffix in PASS_THROUGH_SUFFIXES:
                if booking_id.endswith(suffix):
                    booking_id = booking_id[: -len(suffix)]
                    break
        elif item_type != LineItemType.BOOKING:
            continue

        lease_id = duplicate_of.get(booking_id)
        if lease_id is None:
            continue
        item.excluded = True
        item.exclusion_reason = f"duplicate of mid-term lease {lease_id}"
        changed.append(item)
        logger.info(f"Excluding line item {item.item_type}/{item.item_id}: {item.exclusion_reason}")

    return changed


# ===========================================
# TOTALS
# ===========================================

@dataclass(frozen=True)
class LedgerTotals:
    """Aggregates over a reconciliation's full, non-excluded line items."""
    short_term_revenue: Decimal = ZERO
    mid_term_revenue: Decimal = ZERO
    pass_through_fees: Decimal = ZERO
    total_expenses: Decimal = ZERO
    visit_fees: Decimal = ZERO
    item_count: int = 0

    @property
    def total_revenue(self) -> Decimal:
        return self.short_term_revenue + self.mid_term_revenue


def summarize_line_items(items: Iterable[ReconciliationLineItem]) -> LedgerTotals:
    short_term = ZERO
    mid_term = ZERO
    pass_through = ZERO
    expenses = ZERO
    visits = ZERO
    count = 0

    for item in items:
        if item.excluded:
            continue
        count += 1
        amount = to_decimal(item.amount)
        item_type = LineItemType(item.item_type)

        if item_type == LineItemType.BOOKING:
            short_term += amount
        elif item_type == LineItemType.MID_TERM_BOOKING:
            mid_term += amount
        elif item_type == LineItemType.PASS_THROUGH_FEE:
            pass_through += abs(amount)
        elif item_type == LineItemType.EXPENSE:
            expenses += abs(amount)
        elif item_type == LineItemType.VISIT:
            visits += abs(amount)

    return LedgerTotals(
        short_term_revenue=to_money(short_term),
        mid_term_revenue=to_money(mid_term),
        pass_through_fees=to_money(pass_through),
        total_expenses=to_money(expenses),
        visit_fees=to_money(visits),
        item_count=count,
    )
