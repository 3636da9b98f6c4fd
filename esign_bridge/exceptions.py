"""
Error taxonomy and FastAPI error handlers.

Every component raises the most specific EsignError subclass it can; the
handlers below turn them into the uniform {success, message, data} body.
"""
import logging
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from esign_bridge.utils.logging import get_request_id

logger = logging.getLogger(__name__)


class EsignError(Exception):
    """Base application error."""

    status_code = 500
    code = "ESIGN_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(EsignError):
    """Credential material is missing or unreadable."""

    code = "CONFIGURATION_ERROR"


class SigningError(EsignError):
    """The JWT assertion could not be signed."""

    code = "SIGNING_ERROR"


class AuthError(EsignError):
    """The OAuth token exchange failed."""

    status_code = 502
    code = "AUTH_ERROR"


class ApiError(EsignError):
    """Provider answered outside [200, 300)."""

    status_code = 502
    code = "API_ERROR"

    def __init__(self, http_status: int, body: str, message: Optional[str] = None):
        self.http_status = http_status
        self.body = body
        super().__init__(
            message or f"DocuSign API Error [{http_status}]: {body}",
            details={"http_status": http_status},
        )


class ValidationError(EsignError):
    """A required caller-supplied field is missing or malformed."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, details={"field": field} if field else None)


class MissingFieldError(ValidationError):
    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}", field=field)


class MergeError(EsignError):
    """The third-party PDF merge pipeline failed."""

    status_code = 502
    code = "MERGE_ERROR"


class FetchError(EsignError):
    """A document download failed or returned no content."""

    status_code = 502
    code = "FETCH_ERROR"

    def __init__(self, message: str, http_status: Optional[int] = None):
        self.http_status = http_status
        super().__init__(message, details={"http_status": http_status} if http_status else None)


class EnvelopeError(EsignError):
    """Envelope creation was rejected by the provider."""

    status_code = 502
    code = "ENVELOPE_ERROR"

    def __init__(self, message: str, http_status: Optional[int] = None, body: Optional[str] = None):
        self.http_status = http_status
        self.body = body
        super().__init__(message, details={"http_status": http_status} if http_status else None)


class NotificationError(EsignError):
    """Status webhook delivery failed. Logged, never surfaced to callers."""

    code = "NOTIFICATION_ERROR"


def build_error_response(
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> dict:
    """Build the uniform failure body."""
    response = {
        "success": 0,
        "message": message,
        "data": None,
        "code": code,
        "request_id": get_request_id(),
    }
    if details:
        response["details"] = details
    return response


async def esign_exception_handler(
    request: Request,
    exc: EsignError,
) -> JSONResponse:
    """Handle application errors."""
    logger.warning(f"EsignError: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(exc.code, f"Error: {exc.message}", exc.details),
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(f"HTTPException: {exc.status_code} - {exc.detail}")

    if isinstance(exc.detail, dict):
        code = exc.detail.get("code", "HTTP_ERROR")
        message = exc.detail.get("message", str(exc.detail))
    else:
        code = "HTTP_ERROR"
        message = str(exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(code, message),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request body validation errors."""
    logger.warning(f"RequestValidationError: {exc.errors()}")

    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=422,
        content=build_error_response(
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": errors},
        ),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    return JSONResponse(
        status_code=500,
        content=build_error_response(
            "INTERNAL_ERROR",
            "An unexpected error occurred",
        ),
    )
