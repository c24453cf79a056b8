"""
PropRecon - Services Package

Reconciliation engine: source reads, deduplication, proration, fees,
line item synthesis and the reconciliation lifecycle.
"""

from proprecon.services.reconciliation_service import (
    ReconciliationService,
    get_reconciliation_service,
)

__all__ = [
    "ReconciliationService",
    "get_reconciliation_service",
]
