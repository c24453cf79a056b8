"""
PropRecon - Monthly Reconciliation Models

One reconciliation per property and calendar month, its signed ledger of line
items, and an append-only audit trail.

Lifecycle owned here:
- preview: placeholder written by the owner-portal preview job
- draft: fully computed, ready for statement generation
Later states (approved, statement_sent, paid) belong to the statement and
billing collaborators and are never regressed by the engine.
"""

import uuid
import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid,
    Enum as SQLEnum, JSON, UniqueConstraint, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proprecon.database import Base
from proprecon.models.base import BaseModel


# =============================================================================
# ENUMS
# =============================================================================

class ReconciliationStatus(str, Enum):
    """Monthly reconciliation status."""
    PREVIEW = "preview"
    DRAFT = "draft"
    APPROVED = "approved"
    STATEMENT_SENT = "statement_sent"
    PAID = "paid"


class LineItemType(str, Enum):
    """Kind of monetary fact a line item represents."""
    BOOKING = "booking"
    MID_TERM_BOOKING = "mid_term_booking"
    PASS_THROUGH_FEE = "pass_through_fee"
    EXPENSE = "expense"
    VISIT = "visit"
    ORDER_MINIMUM = "order_minimum"


class AuditAction(str, Enum):
    """Reconciliation lifecycle transitions recorded in the audit trail."""
    CREATED = "created"
    FINALIZED = "finalized"
    AUTO_FINALIZED = "auto_finalized"
    DELETED = "deleted"
    ITEM_VERIFIED = "item_verified"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


# ===========================================
# MONTHLY RECONCILIATION
# ===========================================

class MonthlyReconciliation(BaseModel):
    """
    Financial record for one property and one calendar month.

    All money columns are aggregates recomputed from the line items, except
    management_fee and order_minimum_fee which come from the fee rules.
    """

    __tablename__ = "monthly_reconciliations"
    __table_args__ = (
        UniqueConstraint(
            "property_id", "reconciliation_month",
            name="uq_monthly_reconciliations_property_month",
        ),
        Index("ix_monthly_reconciliations_status_month", "status", "reconciliation_month"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("property_owners.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # First day of the reconciled month
    reconciliation_month: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    # Revenue
    short_term_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    mid_term_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    # Pass-through fees are informational; the rest are deducted from the owner
    pass_through_fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    visit_fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    total_expenses: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    management_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    order_minimum_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    net_to_owner: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    # Inputs to the fee rules, kept for audit
    nightly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    fee_policy: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    status: Mapped[ReconciliationStatus] = mapped_column(
        SQLEnum(ReconciliationStatus, values_callable=_enum_values, name="reconciliation_status"),
        default=ReconciliationStatus.DRAFT,
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    line_items: Mapped[List["ReconciliationLineItem"]] = relationship(
        "ReconciliationLineItem",
        back_populates="reconciliation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_deletable(self) -> bool:
        return self.status == ReconciliationStatus.DRAFT


# ===========================================
# LINE ITEMS
# ===========================================

class ReconciliationLineItem(BaseModel):
    """
    One signed monetary fact (positive = revenue, negative = deduction).

    (item_type, item_id) is the natural key within a reconciliation; repeated
    finalize runs only append keys that are not present yet.
    """

    __tablename__ = "reconciliation_line_items"
    __table_args__ = (
        UniqueConstraint(
            "reconciliation_id", "item_type", "item_id",
            name="uq_reconciliation_line_items_natural_key",
        ),
    )

    reconciliation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("monthly_reconciliations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_type: Mapped[LineItemType] = mapped_column(
        SQLEnum(LineItemType, values_callable=_enum_values, name="line_item_type"),
        nullable=False,
    )
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fee_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Set by the review screens; excluded rows are left out of every total
    excluded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    exclusion_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    reconciliation: Mapped["MonthlyReconciliation"] = relationship(
        "MonthlyReconciliation",
        back_populates="line_items",
    )


# ===========================================
# AUDIT TRAIL
# ===========================================

class ReconciliationAuditLog(Base):
    """
    Append-only record of lifecycle transitions.

    reconciliation_id is not a foreign key so entries outlive a
    deleted draft. This table should have no UPDATE or DELETE permissions.
    """

    __tablename__ = "reconciliation_audit_log"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    reconciliation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, values_callable=_enum_values, name="reconciliation_audit_action"),
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # System actions (the scheduled sweep) have no user
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    item_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    previous_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<ReconciliationAuditLog(action={self.action}, reconciliation_id={self.reconciliation_id})>"
