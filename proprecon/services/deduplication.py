"""
PropRecon - Short-Term / Mid-Term Deduplication

The channel feed sometimes reports a mid-term tenant's stay as an ordinary
short-term booking. Counting both would book the same occupancy twice, so a
short-term booking that matches an active lease is dropped from short-term
revenue; the lease's prorated rent still counts.

Matching is a heuristic (date overlap plus a first-name check) and can be
wrong in both directions. Tightening it is a product decision; swap in a
different DuplicateMatchStrategy rather than editing the orchestration.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

from proprecon.models.booking import MidTermBooking, MidTermBookingStatus, ShortTermBooking

logger = logging.getLogger(__name__)


class DuplicateMatchStrategy(Protocol):
    """Decides whether a short-term booking is a duplicate report of a lease."""

    def is_duplicate(self, short_term: ShortTermBooking, mid_term: MidTermBooking) -> bool:
        ...


def _normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def _first_token(name: str) -> str:
    parts = name.split()
    return parts[0] if parts else ""


class OverlapAndNameStrategy:
    """
    Same property, overlapping dates, and the first name of either party
    appears in the other's full name (case-insensitive).

    An empty name never matches; an empty token would otherwise be contained
    in every name.
    """

    def dates_overlap(self, short_term: ShortTermBooking, mid_term: MidTermBooking) -> bool:
        if short_term.check_in is None or mid_term.start_date is None or mid_term.end_date is None:
            return False
        check_out = short_term.check_out or short_term.check_in
        return short_term.check_in <= mid_term.end_date and check_out >= mid_term.start_date

    def names_match(self, guest_name: Optional[str], tenant_name: Optional[str]) -> bool:
        guest = _normalize_name(guest_name)
        tenant = _normalize_name(tenant_name)
        if not guest or not tenant:
            return False

        guest_first = _first_token(guest)
        tenant_first = _first_token(tenant)
        return tenant_first in guest or guest_first in tenant

    def is_duplicate(self, short_term: ShortTermBooking, mid_term: MidTermBooking) -> bool:
        if short_term.property_id != mid_term.property_id:
            return False
        return (
            self.dates_overlap(short_term, mid_term)
            and self.names_match(short_term.guest_name, mid_term.tenant_name)
        )


@dataclass
class DeduplicationResult:
    """Short-term bookings split into revenue-bearing and duplicate reports."""
    kept: List[ShortTermBooking] = field(default_factory=list)
    excluded: List[ShortTermBooking] = field(default_factory=list)
    # excluded booking id -> id of the lease it duplicates
    duplicate_of: Dict[str, uuid.UUID] = field(default_factory=dict)


class Deduplicator:
    """Removes short-term bookings that duplicate an active mid-term lease."""

    def __init__(self, strategy: Optional[DuplicateMatchStrategy] = None):
        self.strategy = strategy or OverlapAndNameStrategy()

    def find_matching_lease(
        self,
        short_term: ShortTermBooking,
        mid_term_bookings: Iterable[MidTermBooking],
    ) -> Optional[MidTermBooking]:
        for mid_term in mid_term_bookings:
            if mid_term.status != MidTermBookingStatus.ACTIVE.value:
                continue
            if self.strategy.is_duplicate(short_term, mid_term):
                return mid_term
        return None

    def split(
        self,
        short_term_bookings: Iterable[ShortTermBooking],
        mid_term_bookings: Iterable[MidTermBooking],
    ) -> DeduplicationResult:
        leases = list(mid_term_bookings)
        result = DeduplicationResult()

        for booking in short_term_bookings:
            lease = self.find_matching_lease(booking, leases)
            if lease is None:
                result.kept.append(booking)
                continue

            logger.info(
                f"Excluding short-term booking {booking.id} ({booking.guest_name}) "
                f"as a duplicate of mid-term lease {lease.id} ({lease.tenant_name})"
            )
            result.excluded.append(booking)
            result.duplicate_of[str(booking.id)] = lease.id

        return result
