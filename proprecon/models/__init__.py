"""
PropRecon - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from proprecon.models.base import BaseModel, TimestampMixin
from proprecon.models.property import Property, PropertyOwner
from proprecon.models.booking import ShortTermBooking, MidTermBooking, MidTermBookingStatus
from proprecon.models.expense import Expense, Visit
from proprecon.models.reconciliation import (
    MonthlyReconciliation,
    ReconciliationLineItem,
    ReconciliationAuditLog,
    ReconciliationStatus,
    LineItemType,
    AuditAction,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "Property",
    "PropertyOwner",
    "ShortTermBooking",
    "MidTermBooking",
    "MidTermBookingStatus",
    "Expense",
    "Visit",
    "MonthlyReconciliation",
    "ReconciliationLineItem",
    "ReconciliationAuditLog",
    "ReconciliationStatus",
    "LineItemType",
    "AuditAction",
]
