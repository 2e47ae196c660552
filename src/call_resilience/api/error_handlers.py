"""
FastAPI exception handlers producing response envelopes.

Request format errors map to 400; anything else goes through
ResponseFormatter.handle_error (HTTP 200, ``success=false``).
"""

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from call_resilience.formatting.formatter import ResponseFormatter

logger = structlog.get_logger(__name__)

INVALID_REQUEST = "Invalid request parameters"


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError | PydanticValidationError
) -> JSONResponse:
    """
    Handle request format errors (FastAPI body parsing or explicit model validation).

    Maps to 400 Bad Request.
    """
    errors = exc.errors()
    logger.warning("Invalid request format", error_count=len(errors))

    envelope = ResponseFormatter.error(
        INVALID_REQUEST,
        details="; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in errors
        ),
        meta={"server_session_id": _request_id(request)},
    )
    return ResponseFormatter.create_http_response(envelope, status.HTTP_400_BAD_REQUEST)


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors with an HTTP 200 error envelope."""
    return ResponseFormatter.handle_error(exc, session_id=_request_id(request))


# Exception handler mapping for FastAPI app.add_exception_handler()
EXCEPTION_HANDLERS = {
    RequestValidationError: request_validation_error_handler,
    PydanticValidationError: request_validation_error_handler,
    Exception: generic_error_handler,
}
