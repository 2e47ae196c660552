"""
Standardized response formatting.

Builders for success / error / warning envelopes, performance metadata,
fallback training content, tolerant JSON parsing of LLM replies and the
final HTTP response. Nothing in this module raises on bad input: callers
use it on their error paths.
"""

import json
import re
import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from call_resilience.formatting.envelope import ResponseEnvelope, ResponseMeta, utc_timestamp
from call_resilience.models.enums import ResponseStatus
from call_resilience.monitoring.metrics import fallback_content_total

logger = structlog.get_logger(__name__)

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"
NO_STACK_TRACE = "No stack trace available"
FALLBACK_WARNING = "Fallback content generated after a technical error"

_JSON_FENCE_OPEN = re.compile(r"^```json\s*")
_FENCE_OPEN = re.compile(r"^```\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


@dataclass(frozen=True)
class JSONParseResult:
    """Outcome of ``safe_parse_json``: data on success, error text otherwise."""

    success: bool
    data: Any = None
    error: Optional[str] = None


class ResponseFormatter:
    """Envelope builders. All methods are stateless class/static methods."""

    @staticmethod
    def _meta(status: ResponseStatus, overrides: Optional[Mapping[str, Any]]) -> ResponseMeta:
        # status and timestamp always come from the builder
        data = {str(key): value for key, value in (overrides or {}).items()}
        data.update(status=status, timestamp=utc_timestamp())
        try:
            return ResponseMeta(**data)
        except ValidationError as e:
            # Keep the envelope; list the rejected keys under invalid_meta
            invalid = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            logger.warning("Dropped invalid response meta", fields=invalid)
            kept = {key: value for key, value in data.items() if key not in invalid}
            return ResponseMeta(**{**kept, "invalid_meta": invalid})

    @classmethod
    def success(cls, content: Any, meta: Optional[Mapping[str, Any]] = None) -> ResponseEnvelope:
        """Envelope for a successful result (``meta.status = OK``)."""
        return ResponseEnvelope(
            success=True,
            content=content,
            meta=cls._meta(ResponseStatus.OK, meta),
        )

    @classmethod
    def error(
        cls,
        message: str,
        details: Optional[str] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> ResponseEnvelope:
        """
        Envelope for a failure (``meta.status = ERROR``).

        Args:
            message: User-facing failure text
            details: Diagnostic text (stack trace, upstream body); not for end users
            meta: Extra metadata merged into ``meta``
        """
        return ResponseEnvelope(
            success=False,
            error=message,
            details=details or None,
            meta=cls._meta(ResponseStatus.ERROR, meta),
        )

    @classmethod
    def warning(
        cls,
        content: Any,
        warning_message: str,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> ResponseEnvelope:
        """
        Envelope for a degraded success (``meta.status = WARNING``).

        The warning text travels in ``error`` while ``success`` stays True.
        """
        return ResponseEnvelope(
            success=True,
            content=content,
            error=warning_message,
            meta=cls._meta(ResponseStatus.WARNING, meta),
        )

    @staticmethod
    def add_performance_metrics(
        envelope: ResponseEnvelope,
        start_time_ms: int,
        extra: Optional[Mapping[str, Any]] = None,
        now_ms: Optional[int] = None,
    ) -> ResponseEnvelope:
        """
        Copy of ``envelope`` with response time and extra metrics in ``meta``.

        Args:
            envelope: Envelope to annotate (not mutated)
            start_time_ms: Epoch ms at which handling started
            extra: Additional values for ``meta.performance``
            now_ms: Override for the current epoch ms

        Returns:
            New envelope with ``meta.response_time_ms`` and ``meta.performance``
        """
        now = now_ms if now_ms is not None else int(time.time() * 1000)
        response_time_ms = max(now - start_time_ms, 0)

        meta_data = envelope.meta.model_dump()
        meta_data["response_time_ms"] = response_time_ms
        meta_data["performance"] = {"response_time_ms": response_time_ms, **(extra or {})}

        return envelope.model_copy(update={"meta": ResponseMeta(**meta_data)})

    @classmethod
    def create_fallback_content(
        cls,
        training_type: str,
        level: str,
        domain: str,
        session_id: str,
    ) -> ResponseEnvelope:
        """
        Placeholder training content for when generation failed after all retries.

        The payload has the same shape as generated content (``questions`` +
        ``session_info``) so consumers render it without special-casing;
        ``session_info.is_error_fallback`` flags it.
        """
        fallback_content_total.labels(training_type=training_type).inc()
        content = {
            "questions": [
                {
                    "id": "fallback-error",
                    "question": "This demonstration question is shown because of a technical error.",
                    "options": ["Retry", "Continue", "Quit", "Contact support"],
                    "correct_answer": 0,
                    "explanation": "The system produced demonstration content after a technical error.",
                    "difficulty": level,
                }
            ],
            "session_info": {
                "id": session_id,
                "training_type": training_type,
                "level": level,
                "domain": domain,
                "created_at": utc_timestamp(),
                "estimated_duration": 5,
                "is_error_fallback": True,
            },
        }
        return cls.warning(
            content,
            FALLBACK_WARNING,
            {
                "fallback_reason": "technical_error",
                "original_session_id": session_id,
            },
        )

    @staticmethod
    def clean_llm_response(content: str) -> str:
        """
        Strip Markdown fences and surrounding prose from an LLM JSON reply.

        Keeps the substring from the first ``{`` to the last ``}`` when both exist.
        """
        cleaned = content.strip()

        if cleaned.startswith("```json"):
            cleaned = _FENCE_CLOSE.sub("", _JSON_FENCE_OPEN.sub("", cleaned))
        elif cleaned.startswith("```"):
            cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", cleaned))

        first_brace = cleaned.find("{")
        last_brace = cleaned.rfind("}")
        if first_brace != -1 and last_brace != -1 and first_brace < last_brace:
            cleaned = cleaned[first_brace:last_brace + 1]

        return cleaned

    @classmethod
    def safe_parse_json(cls, content: str) -> JSONParseResult:
        """Parse an LLM reply as JSON without raising."""
        if not isinstance(content, str):
            return JSONParseResult(
                success=False,
                error=f"JSON parsing failed: expected str, got {type(content).__name__}",
            )
        try:
            return JSONParseResult(success=True, data=json.loads(cls.clean_llm_response(content)))
        except json.JSONDecodeError as e:
            return JSONParseResult(success=False, error=f"JSON parsing failed: {e.msg}")
        except RecursionError:
            return JSONParseResult(success=False, error="JSON parsing failed: nesting too deep")

    @staticmethod
    def create_http_response(
        envelope: ResponseEnvelope,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> JSONResponse:
        """Serialize an envelope as a JSON HTTP response."""
        return JSONResponse(
            status_code=status_code,
            content=envelope.to_payload(),
            headers=dict(headers or {}),
        )

    @classmethod
    def handle_error(
        cls,
        error: BaseException,
        headers: Optional[Mapping[str, str]] = None,
        session_id: Optional[str] = None,
    ) -> JSONResponse:
        """
        Convert an unhandled exception into an HTTP 200 error envelope.

        Status stays 200 so gateways do not retry on their own; clients
        branch on ``success``.
        """
        logger.error(
            "Unhandled service error",
            error_type=type(error).__name__,
            error=str(error),
            exc_info=error,
        )

        if error.__traceback__ is not None:
            details = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        else:
            details = NO_STACK_TRACE

        meta: dict[str, Any] = {"error_type": type(error).__name__}
        if session_id:
            meta["server_session_id"] = session_id

        envelope = cls.error(str(error) or DEFAULT_ERROR_MESSAGE, details, meta)
        return cls.create_http_response(envelope, 200, headers)
