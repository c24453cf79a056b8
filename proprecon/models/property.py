"""
PropRecon - Property & Owner Models

Property directory read by the reconciliation engine. The engine only writes
back the cached nightly rate and order-minimum tier.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proprecon.models.base import BaseModel


class PropertyOwner(BaseModel):
    """Owner of one or more managed properties."""

    __tablename__ = "property_owners"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    service_type: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True,
        comment="full_service or cohosting",
    )


class Property(BaseModel):
    """Managed property."""

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("property_owners.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Percent, e.g. 15.00. NULL falls back to the configured default.
    management_fee_percentage: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True,
    )

    # Cached by the reconciliation engine for reporting
    nightly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    order_minimum_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    first_listing_live_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    owner: Mapped[Optional["PropertyOwner"]] = relationship("PropertyOwner", lazy="selectin")
