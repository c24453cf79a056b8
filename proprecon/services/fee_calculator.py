"""
PropRecon - Fee Calculator

Average nightly rate, tiered order minimum, management fee and net to owner.

Order minimum tiers (no active mid-term lease in the month):
    rate < $200          -> $250
    $200 <= rate <= $400 -> $400
    rate > $400          -> $750
    no qualifying stays  -> $250
An active mid-term lease waives the order minimum entirely.

The management fee rule is selected by ManagementFeePolicy and applied the
same way on creation and on finalize.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from proprecon.models.booking import ShortTermBooking
from proprecon.utils.money import ZERO, to_decimal, to_money

logger = logging.getLogger(__name__)


ORDER_MINIMUM_LOW = Decimal("250.00")
ORDER_MINIMUM_MID = Decimal("400.00")
ORDER_MINIMUM_HIGH = Decimal("750.00")

TIER_MID_FLOOR = Decimal("200")
TIER_MID_CEILING = Decimal("400")


class ManagementFeePolicy(str, Enum):
    """
    How the management fee and the order minimum combine.

    ADDITIVE: fee = base * pct, and the order minimum is a separate deduction.
    MAX_WITH_MINIMUM: fee = max(base * pct, order minimum); the minimum is
    folded into the fee and not deducted a second time.
    """
    ADDITIVE = "additive"
    MAX_WITH_MINIMUM = "max_with_minimum"


@dataclass(frozen=True)
class NightlyRate:
    """Average nightly rate and the totals it was derived from."""
    rate: Optional[Decimal]
    revenue: Decimal
    nights: int
    booking_count: int


@dataclass(frozen=True)
class FeeBreakdown:
    """Fees for one reconciliation."""
    policy: ManagementFeePolicy
    fee_percentage: Decimal
    fee_base: Decimal
    calculated_fee: Decimal
    management_fee: Decimal
    order_minimum_fee: Decimal

    @property
    def owner_deductions(self) -> Decimal:
        """Fees taken from the owner's share."""
        if self.policy == ManagementFeePolicy.ADDITIVE:
            return self.management_fee + self.order_minimum_fee
        return self.management_fee


def stay_nights(booking: ShortTermBooking) -> Optional[int]:
    """Nights between check-in and check-out, or None when the stay is unusable."""
    if booking.check_in is None or booking.check_out is None:
        return None
    nights = (booking.check_out - booking.check_in).days
    if nights <= 0:
        return None
    return nights


def calculate_average_nightly_rate(bookings: Iterable[ShortTermBooking]) -> NightlyRate:
    """
    Average nightly rate over stays with a positive total and a valid stay.

    Stays with a zero amount or unusable dates are left out of both the
    revenue and the night count rather than counted as zero.
    """
    revenue = ZERO
    nights = 0
    count = 0

    for booking in bookings:
        amount = to_decimal(booking.total_amount)
        if amount <= 0:
            continue

        booking_nights = stay_nights(booking)
        if booking_nights is None:
            logger.warning(
                f"Excluding booking {booking.id} from nightly rate: "
                f"invalid stay {booking.check_in} -> {booking.check_out}"
            )
            continue

        revenue += amount
        nights += booking_nights
        count += 1

    rate = revenue / nights if nights > 0 else None
    return NightlyRate(rate=rate, revenue=revenue, nights=nights, booking_count=count)


def determine_order_minimum_fee(
    nightly_rate: Optional[Decimal],
    has_mid_term: bool,
    is_listed: bool = True,
) -> Decimal:
    """Tiered order minimum for the month."""
    if has_mid_term or not is_listed:
        return ZERO

    if nightly_rate is None or nightly_rate <= 0:
        return ORDER_MINIMUM_LOW
    if nightly_rate < TIER_MID_FLOOR:
        return ORDER_MINIMUM_LOW
    if nightly_rate <= TIER_MID_CEILING:
        return ORDER_MINIMUM_MID
    return ORDER_MINIMUM_HIGH


def calculate_management_fee(
    fee_base: Decimal,
    fee_percentage: Decimal,
    order_minimum_fee: Decimal,
    policy: ManagementFeePolicy,
) -> FeeBreakdown:
    """
    Management fee on `fee_base` (accommodation revenue plus prorated
    mid-term rent). `fee_percentage` is a percent, e.g. 15 for 15%.
    """
    pct = to_decimal(fee_percentage)
    calculated = to_money(to_decimal(fee_base) * pct / Decimal("100"))

    if policy == ManagementFeePolicy.MAX_WITH_MINIMUM:
        management_fee = max(calculated, to_money(order_minimum_fee))
    else:
        management_fee = calculated

    return FeeBreakdown(
        policy=policy,
        fee_percentage=pct,
        fee_base=to_money(fee_base),
        calculated_fee=calculated,
        management_fee=management_fee,
        order_minimum_fee=to_money(order_minimum_fee),
    )


def calculate_net_to_owner(
    total_revenue: Decimal,
    total_expenses: Decimal,
    visit_fees: Decimal,
    fees: FeeBreakdown,
) -> Decimal:
    """Revenue less expenses, visit charges and the owner-side fees."""
    return to_money(
        to_decimal(total_revenue)
        - to_decimal(total_expenses)
        - to_decimal(visit_fees)
        - fees.owner_deductions
    )
