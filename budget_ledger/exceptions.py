"""
Typed errors raised by the engine and their HTTP handlers.

Every error carries a machine-readable code, an HTTP status
and a details dict naming the entity kind, the identifier
and, where known, the ledger involved.
"""

import logging
from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: Dict[str, Any] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(AppException):
    """Non-positive amount, unknown flow or type, bad name, bad date range."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_INVALID_INPUT",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class NotFoundError(AppException):
    """Raised when an entity is missing or not owned by the caller."""

    def __init__(
        self,
        resource: str,
        resource_id: Any = None,
        ledger_id: Any = None,
        message: str = None,
    ):
        if message is None:
            message = f"{resource} not found"
            if resource_id is not None:
                message = f"{resource} {resource_id} not found"
            if ledger_id is not None:
                message = f"{message} in ledger {ledger_id}"
        details = {"resource": resource, "id": resource_id}
        if ledger_id is not None:
            details["ledger_id"] = ledger_id
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ConflictError(AppException):
    """Duplicate name or an operation the entity's state does not allow."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class ForbiddenError(AppException):
    """Raised when a special account would be deleted or altered."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class InconsistentError(AppException):
    """
    A balance chain no longer satisfies its invariants.

    The account needs rebuild_account_balance(). Always logged.
    """

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_INCONSISTENT",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )
        logger.error("Balance inconsistency: %s %s", message, self.details)


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render application exceptions in the standard error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {},
        },
    )
