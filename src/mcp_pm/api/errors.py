"""Structured API error handling.

This module provides:
- ErrorCode enum with domain-grouped error codes
- APIError exception class for structured error responses
- Exception handlers for consistent error formatting, including the
  mapping of domain exceptions (StoreUnavailable, ConfigurationError)

Usage:
    from mcp_pm.api.errors import APIError, ErrorCode

    raise APIError(
        status_code=401,
        code=ErrorCode.SESSION_INVALID,
        message="Invalid or expired session",
    )

Response format:
    {
        "detail": {
            "code": "SESSION_INVALID",
            "message": "Invalid or expired session",
            "details": {...}
        }
    }
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "ErrorCode",
    "api_error_handler",
    "configuration_error_handler",
    "http_exception_handler",
    "store_unavailable_handler",
    "validation_error_handler",
]

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_pm.exceptions import ConfigurationError, StoreUnavailable
from mcp_pm.telemetry.system_logger import get_system_logger


class ErrorCode(str, Enum):
    """API error codes for programmatic handling.

    Codes are namespaced by domain:
    - SESSION_*: Session lookup and storage errors
    - OAUTH_*: OAuth flow errors
    - GITHUB_*: GitHub App errors
    - WEBHOOK_*: Webhook delivery errors
    - CONFIG_*: Configuration errors
    - VALIDATION_*: Input validation errors
    - INTERNAL_*: Internal server errors
    """

    # Session errors (400, 401, 503)
    SESSION_ID_REQUIRED = "SESSION_ID_REQUIRED"
    SESSION_INVALID = "SESSION_INVALID"
    SESSION_STORE_UNAVAILABLE = "SESSION_STORE_UNAVAILABLE"

    # OAuth errors (400, 502)
    OAUTH_STATE_INVALID = "OAUTH_STATE_INVALID"
    OAUTH_CODE_REQUIRED = "OAUTH_CODE_REQUIRED"
    OAUTH_EXCHANGE_FAILED = "OAUTH_EXCHANGE_FAILED"

    # GitHub App errors (400, 502)
    GITHUB_INSTALLATION_REQUIRED = "GITHUB_INSTALLATION_REQUIRED"
    GITHUB_SETUP_ACTION_INVALID = "GITHUB_SETUP_ACTION_INVALID"
    GITHUB_API_ERROR = "GITHUB_API_ERROR"

    # Webhook errors (400, 401)
    WEBHOOK_SIGNATURE_INVALID = "WEBHOOK_SIGNATURE_INVALID"
    WEBHOOK_PAYLOAD_INVALID = "WEBHOOK_PAYLOAD_INVALID"

    # Config errors (500)
    CONFIG_MISSING = "CONFIG_MISSING"

    # Generic
    NOT_FOUND = "NOT_FOUND"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class APIError(HTTPException):
    """Structured API error with error code.

    Attributes:
        status_code: HTTP status code.
        code: Error code from ErrorCode enum.
        error_message: Human-readable error message.
        error_details: Optional contextual details.
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.error_message = message
        self.error_details = details

        detail: dict[str, Any] = {
            "code": code.value,
            "message": message,
        }
        if details:
            detail["details"] = details

        super().__init__(status_code=status_code, detail=detail)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    """Map StoreUnavailable to 503.

    Kept distinct from "session not found" so clients can retry instead of
    restarting the OAuth flow.
    """
    details: dict[str, Any] = {}
    if exc.operation:
        details["operation"] = exc.operation

    detail: dict[str, Any] = {
        "code": ErrorCode.SESSION_STORE_UNAVAILABLE.value,
        "message": "Session store is unavailable",
    }
    if details:
        detail["details"] = details

    return JSONResponse(status_code=503, content={"detail": detail})


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Map ConfigurationError to 500 with the names of the missing settings."""
    get_system_logger().error(
        {
            "event": "configuration_missing",
            "message": str(exc),
            "path": request.url.path,
            "missing": exc.missing,
        }
    )
    detail: dict[str, Any] = {
        "code": ErrorCode.CONFIG_MISSING.value,
        "message": str(exc),
    }
    if exc.missing:
        detail["details"] = {"missing": exc.missing}

    return JSONResponse(status_code=500, content={"detail": detail})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with structured response.

    Args:
        request: FastAPI request object.
        exc: RequestValidationError from Pydantic.

    Returns:
        JSONResponse with structured error detail including validation_errors.
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}

    loc = first_error.get("loc", [])
    msg = first_error.get("msg", "Validation error")

    if len(errors) == 1:
        field_parts = [str(part) for part in loc if part not in ("body", "query", "header")]
        field_name = ".".join(field_parts)
        message = f"{field_name}: {msg}" if field_name else msg
    else:
        message = f"{len(errors)} validation errors"

    detail: dict[str, Any] = {
        "code": ErrorCode.VALIDATION_ERROR.value,
        "message": message,
        "validation_errors": [
            {
                "loc": list(e.get("loc", [])),
                "msg": e.get("msg", ""),
                "type": e.get("type", ""),
            }
            for e in errors
        ],
    }

    return JSONResponse(
        status_code=422,
        content={"detail": detail},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap plain HTTPExceptions (404, 405, ...) in the structured format."""
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    code = _status_to_error_code(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": code.value, "message": message}},
        headers=getattr(exc, "headers", None),
    )


def _status_to_error_code(status_code: int) -> ErrorCode:
    """Map HTTP status code to default error code."""
    mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.AUTH_REQUIRED,
        403: ErrorCode.AUTH_FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        405: ErrorCode.METHOD_NOT_ALLOWED,
        409: ErrorCode.CONFLICT,
        500: ErrorCode.INTERNAL_ERROR,
        503: ErrorCode.SERVICE_UNAVAILABLE,
    }
    return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)
