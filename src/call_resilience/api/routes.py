"""
HTTP routes.

Every response body is a ResponseEnvelope. Status codes:
- 200: success, WARNING fallback, or an unhandled error (``success=false``)
- 400: malformed or incomplete parameters
- 401 / 403 / 429: rejected by the auth gate
"""

import time
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from call_resilience.api.dependencies import (
    get_auth_gate,
    get_circuit_breaker,
    get_question_generator,
    get_settings,
)
from call_resilience.api.error_handlers import request_validation_error_handler
from call_resilience.api.models import (
    OPTIONAL_TRAINING_FIELDS,
    REQUIRED_TRAINING_FIELDS,
    TrainingQuestionsRequest,
)
from call_resilience.auth.gate import AuthValidationGate
from call_resilience.auth.models import AuthConfig, AuthResult
from call_resilience.breaker.service import CircuitBreaker
from call_resilience.config import Settings
from call_resilience.formatting.envelope import ResponseEnvelope
from call_resilience.formatting.formatter import ResponseFormatter
from call_resilience.generation import QuestionGenerator
from call_resilience.models.enums import CircuitStatus

logger = structlog.get_logger(__name__)

router = APIRouter()

AUTH_FAILURE_STATUS = {
    "missing_header": status.HTTP_401_UNAUTHORIZED,
    "invalid_token": status.HTTP_401_UNAUTHORIZED,
    "verifier_error": status.HTTP_401_UNAUTHORIZED,
    "insufficient_role": status.HTTP_403_FORBIDDEN,
    "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
}

USAGE_FUNCTION_NAME = "generate-training-questions"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _with_meta(envelope: ResponseEnvelope, **values: Any) -> ResponseEnvelope:
    meta = envelope.meta.model_copy(update={k: v for k, v in values.items() if v is not None})
    return envelope.model_copy(update={"meta": meta})


def _auth_failure(result: AuthResult, request_id: Optional[str]) -> JSONResponse:
    envelope = ResponseFormatter.error(result.error, meta={"server_session_id": request_id})
    return ResponseFormatter.create_http_response(
        envelope, AUTH_FAILURE_STATUS.get(result.reason, status.HTTP_401_UNAUTHORIZED)
    )


async def _authorize_admin(
    request: Request, gate: AuthValidationGate, settings: Settings
) -> Optional[JSONResponse]:
    """None if the caller may use admin routes, else the rejection response."""
    result = await gate.validate_auth(
        request.headers.get("Authorization"),
        AuthConfig(require_auth=settings.REQUIRE_AUTH, allowed_roles=tuple(settings.ADMIN_ROLES)),
    )
    return None if result.success else _auth_failure(result, _request_id(request))


@router.get("/health", summary="Liveness and circuit overview")
async def health(
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    stats = await breaker.get_all_circuit_stats()
    envelope = ResponseFormatter.success(
        {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "circuits": len(stats),
            "open_circuits": sorted(name for name, s in stats.items() if s.status == CircuitStatus.OPEN),
        }
    )
    return ResponseFormatter.create_http_response(envelope)


@router.post(
    "/training/questions",
    summary="Generate training questions",
    description="""
    Generate a training session through the LLM.

    Requires a bearer token and is rate limited per user. When the LLM is
    unavailable (circuit open, retries exhausted, unusable reply) the response
    is a WARNING envelope with fallback content instead of an error.
    """,
    responses={
        200: {"description": "Generated content (OK) or fallback content (WARNING)"},
        400: {"description": "Missing or invalid parameters"},
        401: {"description": "Missing or invalid credentials"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def generate_training_questions(
    request: Request,
    gate: AuthValidationGate = Depends(get_auth_gate),
    generator: QuestionGenerator = Depends(get_question_generator),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    start_ms = _now_ms()
    request_id = _request_id(request)

    try:
        auth = await gate.validate_auth(
            request.headers.get("Authorization"),
            AuthConfig(require_auth=settings.REQUIRE_AUTH, check_rate_limit=True),
        )
        if not auth.success:
            return _auth_failure(auth, request_id)

        try:
            payload = await request.json()
        except ValueError:
            payload = None

        validation = gate.validate_request_params(payload, REQUIRED_TRAINING_FIELDS, OPTIONAL_TRAINING_FIELDS)
        if not validation.is_valid:
            envelope = ResponseFormatter.error(validation.error, meta={"server_session_id": request_id})
            return ResponseFormatter.create_http_response(envelope, status.HTTP_400_BAD_REQUEST)

        try:
            body = TrainingQuestionsRequest.model_validate(validation.cleaned_data)
        except PydanticValidationError as e:
            return await request_validation_error_handler(request, e)

        envelope = await generator.generate(body.training_type, body.level, body.domain, body.session_id)
        envelope = _with_meta(envelope, server_session_id=request_id, client_session_id=body.session_id)
        envelope = ResponseFormatter.add_performance_metrics(envelope, start_ms)

        if auth.user_id:
            await gate.log_api_usage(
                auth.user_id,
                USAGE_FUNCTION_NAME,
                validation.cleaned_data,
                envelope.meta.response_time_ms,
            )

        return ResponseFormatter.create_http_response(envelope)

    except Exception as e:
        return ResponseFormatter.handle_error(e, session_id=request_id)


@router.get("/circuits", summary="Circuit statistics (admin)")
async def list_circuits(
    request: Request,
    gate: AuthValidationGate = Depends(get_auth_gate),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    try:
        rejection = await _authorize_admin(request, gate, settings)
        if rejection is not None:
            return rejection

        stats = await breaker.get_all_circuit_stats()
        envelope = ResponseFormatter.success(
            {name: state.to_dict() for name, state in sorted(stats.items())},
            {"server_session_id": _request_id(request)},
        )
        return ResponseFormatter.create_http_response(envelope)
    except Exception as e:
        return ResponseFormatter.handle_error(e, session_id=_request_id(request))


@router.post("/circuits/{name}/reset", summary="Force a circuit back to CLOSED (admin)")
async def reset_circuit(
    name: str,
    request: Request,
    gate: AuthValidationGate = Depends(get_auth_gate),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    try:
        rejection = await _authorize_admin(request, gate, settings)
        if rejection is not None:
            return rejection

        state = await breaker.reset_circuit(name)
        logger.info("Circuit reset via API", circuit=name)
        envelope = ResponseFormatter.success(
            {"name": name, "state": state.to_dict()},
            {"server_session_id": _request_id(request)},
        )
        return ResponseFormatter.create_http_response(envelope)
    except Exception as e:
        return ResponseFormatter.handle_error(e, session_id=_request_id(request))
