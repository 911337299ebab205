"""
Consistent error handling for the Intelligence Platform API.

Every failure leaves the API in a single envelope:

    {"success": false, "error": {"code": "...", "message": "..."}}

Stack traces are never returned to clients.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base API error carrying an HTTP status and a machine readable code."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict:
        return error_body(self.code, self.message)


class ValidationFailedError(APIError):
    """Request validation error (400)."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__("VALIDATION_ERROR", message, status.HTTP_400_BAD_REQUEST)


class AuthenticationError(APIError):
    """Missing or invalid credentials (401)."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__("UNAUTHORIZED", message, status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(APIError):
    """Authenticated but not allowed (403)."""

    def __init__(self, message: str = "Access denied", code: str = "FORBIDDEN"):
        super().__init__(code, message, status.HTTP_403_FORBIDDEN)


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND"):
        super().__init__(code, message, status.HTTP_404_NOT_FOUND)


class FeatureDisabledError(APIError):
    """Route family switched off by a feature flag (404)."""

    def __init__(self, feature: str):
        super().__init__(
            "FEATURE_DISABLED",
            f"Feature '{feature}' is disabled",
            status.HTTP_404_NOT_FOUND,
        )


class ConfigurationError(APIError):
    """Required environment configuration is missing (500)."""

    def __init__(self, message: str):
        super().__init__("CONFIGURATION_ERROR", message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class UpstreamError(APIError):
    """Database or LLM provider call failed (502 unless overridden)."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
    ):
        super().__init__(code, message, status_code)


def error_body(code: str, message: str) -> dict:
    return {"success": False, "error": {"code": code, "message": message}}


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning(
        f"API error {exc.code} on {request.method} {request.url.path}: {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        code, message = "NOT_FOUND", "Route not found"
    else:
        code, message = "HTTP_ERROR", str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "; ".join(parts) or "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("VALIDATION_ERROR", message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to an application."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
