"""
PropRecon - Pydantic Schemas Package
"""

from proprecon.schemas.reconciliation import (
    ReconciliationCreate,
    ReconciliationResponse,
    CreateReconciliationResponse,
    ReconciliationConflictResponse,
    LineItemResponse,
    LineItemVerifiedUpdate,
    AuditLogResponse,
    FinalizeResponse,
    SweepItemResponse,
    SweepResponse,
)

__all__ = [
    "ReconciliationCreate",
    "ReconciliationResponse",
    "CreateReconciliationResponse",
    "ReconciliationConflictResponse",
    "LineItemResponse",
    "LineItemVerifiedUpdate",
    "AuditLogResponse",
    "FinalizeResponse",
    "SweepItemResponse",
    "SweepResponse",
]
