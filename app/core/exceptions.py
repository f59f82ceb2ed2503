from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from app.core.settings import settings


class LibraryError(HTTPException):
    """Base error rendered as ``{"error": ..., "message": ...}``."""

    status_code_default = 500
    error_default = "Internal server error"

    def __init__(
        self,
        error: Optional[str] = None,
        message: Optional[str] = None,
        *,
        details: Optional[str] = None,
        **extra: Any,
    ):
        self.error = error or self.error_default
        self.message = message
        self.details = details
        self.extra = extra
        super().__init__(status_code=self.status_code_default, detail=self.error)

    def to_body(self) -> dict:
        body: dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        body.update(self.extra)
        if self.details and settings.is_development:
            body["details"] = self.details
        return body


class ValidationError(LibraryError):
    status_code_default = 400
    error_default = "Validation failed"


class UnauthorizedError(LibraryError):
    status_code_default = 401
    error_default = "Authentication required"


class ForbiddenError(LibraryError):
    status_code_default = 403
    error_default = "Admin access required"


class NotFoundError(LibraryError):
    status_code_default = 404
    error_default = "Not found"


class ConflictError(LibraryError):
    status_code_default = 409
    error_default = "Already exists"


class PayloadTooLargeError(LibraryError):
    status_code_default = 413
    error_default = "Payload too large"


class ConversionTimeoutError(LibraryError):
    error_default = "Failed to generate thumbnail"


class ConversionFailedError(LibraryError):
    error_default = "Failed to generate thumbnail"


class ServerMisconfiguredError(LibraryError):
    error_default = "Server misconfigured"


class DatabaseError(LibraryError):
    error_default = "Database error"


def format_size_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}MB"


async def library_error_handler(request: Request, exc: LibraryError):
    if exc.status_code >= 500:
        logger.error(
            f"❌ {request.method} {request.url.path} → {exc.error}: {exc.details or exc.message}"
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "message": message},
    )
