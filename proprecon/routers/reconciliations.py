"""
PropRecon - Monthly Reconciliation API Router

Endpoints:
- Create a draft reconciliation for a property and month
- Finalize one reconciliation, or sweep all ended preview records
- Read reconciliations, line items and audit trail
- Delete drafts
- Mark line items as verified
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from proprecon.database import get_db
from proprecon.models.reconciliation import ReconciliationStatus
from proprecon.schemas.reconciliation import (
    AuditLogResponse,
    CreateReconciliationResponse,
    FinalizeResponse,
    LineItemResponse,
    LineItemVerifiedUpdate,
    ReconciliationConflictResponse,
    ReconciliationCreate,
    ReconciliationResponse,
    SweepResponse,
)
from proprecon.services.reconciliation_service import get_reconciliation_service
from proprecon.utils.error_handling import ReconciliationConflictException

router = APIRouter(prefix="/reconciliations", tags=["Reconciliations"])


# =============================================================================
# CREATE / FINALIZE
# =============================================================================

@router.post(
    "",
    response_model=CreateReconciliationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ReconciliationConflictResponse}},
)
async def create_reconciliation(
    data: ReconciliationCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Compute and save a draft reconciliation.

    When one already exists for the property and month, responds 409 with
    the existing id and whether it can be deleted and recreated.
    """
    service = get_reconciliation_service(db)
    try:
        outcome = await service.create_reconciliation(data.property_id, data.month)
    except ReconciliationConflictException as e:
        body = ReconciliationConflictResponse(
            error=e.message,
            existing_reconciliation_id=e.existing_reconciliation_id,
            can_delete=e.can_delete,
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=body.model_dump(mode="json"),
        )

    return CreateReconciliationResponse(
        reconciliation=ReconciliationResponse.model_validate(outcome.reconciliation),
        line_item_count=outcome.line_item_count,
    )


@router.post("/auto-finalize", response_model=SweepResponse)
async def auto_finalize_previews(db: AsyncSession = Depends(get_db)):
    """Finalize every preview reconciliation whose month has ended."""
    service = get_reconciliation_service(db)
    sweep = await service.auto_finalize_previews()
    return SweepResponse.model_validate(sweep)


@router.post("/{reconciliation_id}/finalize", response_model=FinalizeResponse)
async def finalize_reconciliation(
    reconciliation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Recompute one reconciliation after its month has ended and mark it draft."""
    service = get_reconciliation_service(db)
    outcome = await service.finalize_reconciliation(reconciliation_id)
    return FinalizeResponse(
        reconciliation=ReconciliationResponse.model_validate(outcome.reconciliation),
        previous_status=outcome.previous_status,
        new_items=outcome.new_items,
    )


# =============================================================================
# READS
# =============================================================================

@router.get("", response_model=List[ReconciliationResponse])
async def list_reconciliations(
    property_id: Optional[uuid.UUID] = Query(None, description="Filter by property"),
    status_filter: Optional[ReconciliationStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    service = get_reconciliation_service(db)
    return await service.list_reconciliations(
        property_id=property_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )


@router.get("/{reconciliation_id}", response_model=ReconciliationResponse)
async def get_reconciliation(
    reconciliation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    service = get_reconciliation_service(db)
    return await service.get_reconciliation(reconciliation_id)


@router.get("/{reconciliation_id}/line-items", response_model=List[LineItemResponse])
async def get_line_items(
    reconciliation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    service = get_reconciliation_service(db)
    return await service.get_line_items(reconciliation_id)


@router.get("/{reconciliation_id}/audit-log", response_model=List[AuditLogResponse])
async def get_audit_log(
    reconciliation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Audit trail, available even after a draft has been deleted."""
    service = get_reconciliation_service(db)
    return await service.get_audit_trail(reconciliation_id)


# =============================================================================
# DELETE / REVIEW
# =============================================================================

@router.delete("/{reconciliation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reconciliation(
    reconciliation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete a draft reconciliation."""
    service = get_reconciliation_service(db)
    await service.delete_reconciliation(reconciliation_id)


@router.patch("/line-items/{item_id}/verified", response_model=LineItemResponse)
async def set_line_item_verified(
    item_id: uuid.UUID,
    data: LineItemVerifiedUpdate,
    db: AsyncSession = Depends(get_db),
):
    service = get_reconciliation_service(db)
    return await service.set_line_item_verified(item_id, data.verified)
