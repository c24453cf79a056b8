"""
PropRecon - Booking Models

Short-term channel bookings and mid-term leases. Both tables are written by
the channel-sync job and lease screens; the reconciliation engine only reads
them.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column

from proprecon.models.base import BaseModel


class MidTermBookingStatus(str, Enum):
    """Lease status as recorded by the lease screens."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class ShortTermBooking(BaseModel):
    """Short-term stay synced from the booking channel (OwnerRez)."""

    __tablename__ = "ownerrez_bookings"
    __table_args__ = (
        Index("ix_ownerrez_bookings_property_check_in", "property_id", "check_in"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
    )
    guest_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    listing_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    # Itemized revenue, when the channel reports it
    accommodation_revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    cleaning_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    pet_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)


class MidTermBooking(BaseModel):
    """Mid-term lease billed as a fixed monthly rent."""

    __tablename__ = "mid_term_bookings"
    __table_args__ = (
        Index("ix_mid_term_bookings_property_dates", "property_id", "start_date", "end_date"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_name: Mapped[str] = mapped_column(String(200), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    monthly_rent: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=MidTermBookingStatus.ACTIVE.value,
        nullable=False,
    )
