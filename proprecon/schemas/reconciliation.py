"""
PropRecon - Reconciliation Schemas

Pydantic schemas for monthly reconciliation API requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from proprecon.models.reconciliation import AuditAction, LineItemType, ReconciliationStatus


# ===========================================
# REQUESTS
# ===========================================

class ReconciliationCreate(BaseModel):
    """Create a reconciliation for a property and month."""
    property_id: UUID
    month: date = Field(..., description="Month to reconcile, as YYYY-MM or any date within it")

    @field_validator("month", mode="before")
    @classmethod
    def parse_month(cls, v):
        if isinstance(v, str) and len(v) == 7:
            v = f"{v}-01"
        return v

    @field_validator("month")
    @classmethod
    def first_of_month(cls, v: date) -> date:
        return v.replace(day=1)


class LineItemVerifiedUpdate(BaseModel):
    verified: bool


# ===========================================
# RESPONSES
# ===========================================

class ReconciliationResponse(BaseModel):
    """Monthly reconciliation with its totals."""
    id: UUID
    property_id: UUID
    owner_id: Optional[UUID] = None
    reconciliation_month: date
    status: ReconciliationStatus

    short_term_revenue: Decimal
    mid_term_revenue: Decimal
    total_revenue: Decimal
    pass_through_fees: Decimal
    visit_fees: Decimal
    total_expenses: Decimal
    management_fee: Decimal
    order_minimum_fee: Decimal
    net_to_owner: Decimal

    nightly_rate: Optional[Decimal] = None
    fee_policy: Optional[str] = None
    notes: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateReconciliationResponse(BaseModel):
    reconciliation: ReconciliationResponse
    line_item_count: int


class ReconciliationConflictResponse(BaseModel):
    """Body of a 409 on create; the caller may open or delete the existing record."""
    error: str
    existing_reconciliation_id: Optional[UUID] = None
    can_delete: bool = False
    retryable: bool = True


class LineItemResponse(BaseModel):
    id: UUID
    reconciliation_id: UUID
    item_type: LineItemType
    item_id: str
    description: str
    amount: Decimal
    date: date
    category: Optional[str] = None
    fee_type: Optional[str] = None
    verified: bool
    excluded: bool
    exclusion_reason: Optional[str] = None
    source: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AuditLogResponse(BaseModel):
    id: UUID
    reconciliation_id: UUID
    action: AuditAction
    notes: Optional[str] = None
    user_id: Optional[UUID] = None
    item_id: Optional[str] = None
    previous_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FinalizeResponse(BaseModel):
    """Result of an on-demand finalize."""
    success: bool = True
    reconciliation: ReconciliationResponse
    previous_status: ReconciliationStatus
    new_items: int


class SweepItemResponse(BaseModel):
    id: UUID
    success: bool
    skipped: bool = False
    property: Optional[str] = None
    revenue: Optional[Decimal] = None
    new_items: Optional[int] = None
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SweepResponse(BaseModel):
    """Counts and per-record results of the auto-finalize sweep."""
    finalized_count: int
    failed_count: int
    skipped_count: int
    results: List[SweepItemResponse] = []

    model_config = ConfigDict(from_attributes=True)
