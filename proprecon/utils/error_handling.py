"""
Error Handling Module for PropRecon

This module provides centralized error handling with:
- Custom exception hierarchy for the reconciliation engine
- Standardized error responses
- Error logging
- Database and upstream failure handling
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("proprecon.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    RECONCILIATION_NOT_FOUND = "RECONCILIATION_NOT_FOUND"
    LINE_ITEM_NOT_FOUND = "LINE_ITEM_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_RECONCILIATION = "DUPLICATE_RECONCILIATION"
    STATUS_CONFLICT = "STATUS_CONFLICT"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    MONTH_NOT_ENDED = "MONTH_NOT_ENDED"
    CANNOT_MODIFY = "CANNOT_MODIFY"
    CANNOT_DELETE = "CANNOT_DELETE"

    # Upstream Errors (503)
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = datetime.utcnow()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat() + "Z",
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class ReconciliationNotFoundException(NotFoundException):
    """Reconciliation not found"""

    def __init__(self, reconciliation_id: Union[str, UUID]):
        super().__init__(
            resource_type="Reconciliation",
            resource_id=reconciliation_id,
            code=ErrorCode.RECONCILIATION_NOT_FOUND,
        )


class LineItemNotFoundException(NotFoundException):
    """Reconciliation line item not found"""

    def __init__(self, line_item_id: Union[str, UUID]):
        super().__init__(
            resource_type="Line item",
            resource_id=line_item_id,
            code=ErrorCode.LINE_ITEM_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class ReconciliationConflictException(ConflictException):
    """
    A reconciliation already exists for the property and month.

    Recoverable: the caller can open the existing record, or delete it when it
    is still a draft and create again.
    """

    def __init__(
        self,
        property_id: Union[str, UUID],
        month: str,
        existing_reconciliation_id: Optional[Union[str, UUID]] = None,
        can_delete: bool = False,
    ):
        self.existing_reconciliation_id = existing_reconciliation_id
        self.can_delete = can_delete
        super().__init__(
            message=f"A reconciliation already exists for property '{property_id}' and month {month}",
            resource_type="MonthlyReconciliation",
            code=ErrorCode.DUPLICATE_RECONCILIATION,
            details={
                "property_id": str(property_id),
                "month": month,
                "existing_reconciliation_id": (
                    str(existing_reconciliation_id) if existing_reconciliation_id else None
                ),
                "can_delete": can_delete,
                "retryable": True,
            },
        )


class StatusConflictException(ConflictException):
    """Reconciliation left the expected status before the transition committed"""

    def __init__(self, reconciliation_id: Union[str, UUID], expected_status: str):
        super().__init__(
            message=f"Reconciliation '{reconciliation_id}' is no longer in {expected_status} status",
            resource_type="MonthlyReconciliation",
            code=ErrorCode.STATUS_CONFLICT,
            details={
                "reconciliation_id": str(reconciliation_id),
                "expected_status": expected_status,
                "retryable": False,
            },
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class MonthNotEndedException(BusinessRuleException):
    """Finalize requested before the reconciliation month has ended"""

    def __init__(self, month: str):
        super().__init__(
            message=f"Cannot finalize reconciliation - month {month} has not ended yet",
            rule="MONTH_ENDED",
            code=ErrorCode.MONTH_NOT_ENDED,
            details={"month": month},
        )


class CannotDeleteException(BusinessRuleException):
    """Only draft reconciliations may be deleted"""

    def __init__(self, reconciliation_id: Union[str, UUID], current_status: str):
        super().__init__(
            message=f"Reconciliation '{reconciliation_id}' is {current_status}; only draft reconciliations can be deleted",
            rule="DRAFT_ONLY_DELETE",
            code=ErrorCode.CANNOT_DELETE,
            details={"reconciliation_id": str(reconciliation_id), "status": current_status},
        )


class CannotModifyException(BusinessRuleException):
    """Reconciliation has advanced past draft"""

    def __init__(self, reconciliation_id: Union[str, UUID], current_status: str):
        super().__init__(
            message=f"Reconciliation '{reconciliation_id}' is {current_status} and can no longer be recomputed",
            rule="NO_REGRESSION_PAST_DRAFT",
            code=ErrorCode.CANNOT_MODIFY,
            details={"reconciliation_id": str(reconciliation_id), "status": current_status},
        )


class DataIntegrityException(AppException):
    """
    Source data cannot be reconciled as-is.

    Raised for whole-record problems (missing property or owner). Problems
    with a single booking, lease or expense are logged and the fact skipped.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=ErrorCode.DATA_INTEGRITY_ERROR,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            original_error=original_error,
        )


# ============================================================================
# Upstream / Database Exceptions
# ============================================================================

class UpstreamUnavailableException(AppException):
    """A source read against the datastore failed"""

    def __init__(
        self,
        source: str,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=ErrorCode.UPSTREAM_UNAVAILABLE,
            message=message or f"Unable to read {source}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"source": source},
            original_error=original_error,
        )


class DatabaseException(AppException):
    """Database error exception"""

    def __init__(
        self,
        message: str = "A database error occurred",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


class PersistenceFailureException(DatabaseException):
    """Writing a reconciliation or its line items failed"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=message,
            code=ErrorCode.PERSISTENCE_FAILURE,
            original_error=original_error,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "success": False,
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
        503: ErrorCode.UPSTREAM_UNAVAILABLE,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
