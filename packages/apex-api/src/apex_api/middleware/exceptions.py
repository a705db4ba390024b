"""Global exception handlers for the Apex API.

Every failure is returned as an RFC 7807 Problem Details document:

{
    "type": "https://api.apex.fleet/errors/<error-type>",
    "title": "Human-readable error title",
    "status": 400,
    "detail": "Detailed error description",
    "instance": "/withdraw",
    "request_id": "req_abc123",
    "timestamp": "2024-01-01T00:00:00Z",
    "error_code": "INVALID_ADDRESS",
    ... additional fields
}
"""
from __future__ import annotations

import logging
import time
import traceback
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apex_core.config import load_settings
from apex_core.exceptions import ApexException, InsufficientBalanceError

logger = logging.getLogger(__name__)

ERROR_TYPE_BASE = "https://api.apex.fleet/errors"

ERROR_TYPES = {
    "INVALID_INPUT": ("invalid-input", "Invalid Input"),
    "INVALID_ADDRESS": ("invalid-address", "Invalid Address"),
    "INSUFFICIENT_BALANCE": ("insufficient-balance", "Insufficient Balance"),
    "NETWORK_UNAVAILABLE": ("network-unavailable", "Network Unavailable"),
    "ALL_ENDPOINTS_UNAVAILABLE": ("all-endpoints-unavailable", "All Endpoints Unavailable"),
    "SIGNER_NOT_CONFIGURED": ("signer-not-configured", "Signer Not Configured"),
    "SUBMISSION_ERROR": ("submission-error", "Submission Failed"),
    "CONFIRMATION_PENDING": ("confirmation-pending", "Confirmation Pending"),
    "VALIDATION_ERROR": ("validation-error", "Validation Error"),
    "NOT_FOUND": ("not-found", "Resource Not Found"),
    "METHOD_NOT_ALLOWED": ("method-not-allowed", "Method Not Allowed"),
    "BAD_REQUEST": ("bad-request", "Bad Request"),
    "INTERNAL_ERROR": ("internal-error", "Internal Server Error"),
}

STATUS_TO_CODE = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
}


@dataclass
class RFC7807Error:
    """RFC 7807 Problem Details representation."""
    type: str
    title: str
    status: int
    detail: str
    instance: str
    request_id: str
    extensions: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "type": self.type,
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "instance": self.instance,
            "request_id": self.request_id,
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        if self.extensions:
            result.update(self.extensions)
        return result


def get_request_id(request: Request) -> str:
    """Request ID set by the logging middleware, or the inbound header."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("X-Request-ID", "unknown")


def is_production(request: Request) -> bool:
    """Environment of the settings the app was built with."""
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = load_settings()
    return settings.is_production


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    request_id: str,
    extensions: Optional[Dict[str, Any]] = None,
    instance: str = "",
) -> JSONResponse:
    type_slug, title = ERROR_TYPES.get(
        error_code,
        (error_code.lower().replace("_", "-"), error_code.replace("_", " ").title()),
    )
    error = RFC7807Error(
        type=f"{ERROR_TYPE_BASE}/{type_slug}",
        title=title,
        status=status_code,
        detail=message,
        instance=instance,
        request_id=request_id,
        extensions={"error_code": error_code, **(extensions or {})},
    )
    return JSONResponse(
        status_code=status_code,
        content=error.to_dict(),
        headers={"X-Request-ID": request_id},
        media_type="application/problem+json",
    )


def _balance_extension(exc: InsufficientBalanceError) -> Dict[str, Any]:
    try:
        return {"balance": float(Decimal(exc.balance))}
    except (InvalidOperation, ValueError):
        return {"balance": exc.balance}


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        request_id = get_request_id(request)
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        logger.warning(
            f"Validation error: {len(errors)} field(s) failed",
            extra={"request_id": request_id, "path": request.url.path},
        )
        return create_error_response(
            error_code="VALIDATION_ERROR",
            message="One or more fields failed validation",
            status_code=422,
            request_id=request_id,
            extensions={"errors": errors},
            instance=request.url.path,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        request_id = get_request_id(request)
        logger.warning(
            f"HTTP error {exc.status_code}: {exc.detail}",
            extra={"request_id": request_id, "path": request.url.path},
        )
        return create_error_response(
            error_code=STATUS_TO_CODE.get(exc.status_code, "INTERNAL_ERROR"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            status_code=exc.status_code,
            request_id=request_id,
            instance=request.url.path,
        )

    @app.exception_handler(ApexException)
    async def apex_exception_handler(
        request: Request, exc: ApexException
    ) -> JSONResponse:
        """Map the withdrawal error taxonomy onto HTTP responses."""
        request_id = get_request_id(request)

        if exc.http_status >= 500:
            logger.error(
                f"Server error: {exc.error_code} - {exc.message}",
                extra={"request_id": request_id, "error_code": exc.error_code, "details": exc.details},
            )
        else:
            logger.warning(
                f"Client error: {exc.error_code} - {exc.message}",
                extra={"request_id": request_id, "error_code": exc.error_code},
            )

        extensions: Dict[str, Any] = {}
        if exc.details:
            extensions["details"] = exc.details
        if isinstance(exc, InsufficientBalanceError):
            extensions.update(_balance_extension(exc))

        return create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            status_code=exc.http_status,
            request_id=request_id,
            extensions=extensions,
            instance=request.url.path,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all; hides internals outside dev."""
        request_id = get_request_id(request)
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            extra={"request_id": request_id, "path": request.url.path, "method": request.method},
            exc_info=True,
        )

        if is_production(request):
            message = "An internal error occurred"
            extensions = None
        else:
            message = f"{type(exc).__name__}: {exc}"
            extensions = {
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exc().split("\n")[-10:],
            }

        return create_error_response(
            error_code="INTERNAL_ERROR",
            message=message,
            status_code=500,
            request_id=request_id,
            extensions=extensions,
            instance=request.url.path,
        )
