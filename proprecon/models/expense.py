"""
PropRecon - Expense & Visit Models

Cost facts maintained by the expense and visit screens. The `exported` and
`billed` flags are flipped by the statement collaborator once a fact has been
charged to the owner.
"""

import uuid
import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String, Text, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column

from proprecon.models.base import BaseModel


class Expense(BaseModel):
    """Property expense."""

    __tablename__ = "expenses"
    __table_args__ = (
        Index("ix_expenses_property_date", "property_id", "date"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    purpose: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    items_detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    exported: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Visit(BaseModel):
    """Billable property visit by staff."""

    __tablename__ = "visits"
    __table_args__ = (
        Index("ix_visits_property_date", "property_id", "date"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    visited_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    billed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
