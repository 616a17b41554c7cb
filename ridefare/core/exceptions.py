"""
Typed pricing errors and the FastAPI handlers that render them.

Every business-rule violation raised by the services is a subclass of
``PricingError`` carrying a stable ``error_code``, an HTTP status and an
optional ``details`` mapping.  Infrastructure failures are wrapped in
``DependencyUnavailableError`` with the original exception chained as its
cause.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PricingError(Exception):
    """Base class for all pricing errors."""

    error_code = "pricing_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(PricingError):
    """Raised when a requested entity does not exist."""

    error_code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(
            message,
            details={"resource": resource, "id": str(resource_id) if resource_id else None},
        )


class InvalidInputError(PricingError):
    error_code = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(PricingError):
    """Raised on illegal state transitions or duplicate scopes."""

    error_code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class PreconditionFailedError(PricingError):
    """Raised when a negotiated price falls outside the allowed band."""

    error_code = "precondition_failed"
    status_code = status.HTTP_412_PRECONDITION_FAILED


class DependencyUnavailableError(PricingError):
    """Raised when the store or another collaborator cannot be reached."""

    error_code = "dependency_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, dependency: str, cause: Optional[BaseException] = None):
        message = f"{dependency} unavailable"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, details={"dependency": dependency})


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def pricing_error_handler(request: Request, exc: PricingError) -> JSONResponse:
    """Render a ``PricingError`` as a JSON error body."""
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.message,
            exc_info=exc.__cause__,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as ``invalid_input``."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error_code": InvalidInputError.error_code,
            "message": "Validation error",
            "details": {"errors": _jsonable_errors(exc.errors())},
        },
    )


def _jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    # ``ctx`` may carry the raw exception instance, which is not serialisable
    cleaned = []
    for error in errors:
        entry = {k: v for k, v in error.items() if k != "ctx"}
        if "ctx" in error:
            entry["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        cleaned.append(entry)
    return cleaned


def register_exception_handlers(app) -> None:
    app.add_exception_handler(PricingError, pricing_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
