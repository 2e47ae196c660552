"""
OpenAI-compatible chat completion client.

Communicates with ``POST /chat/completions`` using httpx AsyncClient. Supports:
- JSON object response format
- Connection pooling via a persistent client
- Error mapping to kind-tagged exceptions for the retry layer

One call is one HTTP round trip: retries and circuit breaking are applied
by the caller (see ``call_resilience.guard``).
"""

import json
import time
from typing import Any, Optional

import httpx
import structlog

from call_resilience.config import Settings
from call_resilience.llm.base_client import BaseLLMClient
from call_resilience.llm.exceptions import (
    LLMConnectionError,
    LLMEmptyResponseError,
    LLMGenerationError,
    LLMRateLimitError,
    LLMRequestError,
    LLMTimeoutError,
)
from call_resilience.models.llm_models import ChatCompletionRequest, ChatCompletionResponse
from call_resilience.monitoring.metrics import llm_latency_seconds, llm_tokens_total

logger = structlog.get_logger(__name__)


class OpenAIClient(BaseLLMClient):
    """
    OpenAI chat completion client.

    API Endpoints:
    - POST /chat/completions: Generate a completion
    - GET /models: Reachability check

    Error mapping:
    - 429 -> LLMRateLimitError
    - 5xx -> LLMGenerationError
    - other 4xx -> LLMRequestError
    - httpx timeout -> LLMTimeoutError
    - other transport errors -> LLMConnectionError
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer key sent on every request
            base_url: API root (proxies and compatible servers work too)
            timeout: Request timeout in seconds
            connection_limits: httpx pool limits (default: 10 max connections)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(base_url, timeout)
        self._api_key = api_key
        self._connection_limits = connection_limits or httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIClient":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.OPENAI_TIMEOUT,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                headers={"Authorization": f"Bearer {self._api_key}"},
                transport=self._transport,
            )
            logger.debug("Created new httpx AsyncClient")
        return self._client

    @staticmethod
    def _build_payload(request: ChatCompletionRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [message.model_dump() for message in request.messages],
            "max_tokens": request.max_tokens,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """
        Run one chat completion.

        Response (abridged):
        {
            "model": "gpt-4.1-2025-04-14",
            "choices": [{"message": {"role": "assistant", "content": "..."},
                         "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 50, "completion_tokens": 150, "total_tokens": 200}
        }
        """
        start_time = time.perf_counter()
        payload = self._build_payload(request)

        logger.info(
            "Sending chat completion request",
            model=request.model,
            message_count=len(request.messages),
            max_tokens=request.max_tokens,
            json_mode=request.json_mode,
        )

        try:
            client = await self._get_client()
            response = await client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            self._observe(request.model, start_time, success=False)
            logger.warning("OpenAI request timeout", timeout=self.timeout, error=str(e))
            raise LLMTimeoutError(
                f"Request timeout after {self.timeout}s",
                details={"timeout": self.timeout},
            ) from e
        except httpx.TransportError as e:
            self._observe(request.model, start_time, success=False)
            logger.warning("OpenAI network error", error=str(e), error_type=type(e).__name__)
            raise LLMConnectionError(
                f"Network error: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if response.status_code >= 400:
            self._observe(request.model, start_time, success=False)
            raise self._status_error(response)

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            self._observe(request.model, start_time, success=False)
            raise LLMGenerationError(
                "Invalid JSON body from OpenAI",
                details={"parse_error": str(e)},
                status_code=response.status_code,
            ) from e

        choices = data.get("choices") or []
        message = choices[0].get("message") or {} if choices else {}
        content = message.get("content")
        if not content:
            self._observe(request.model, start_time, success=False)
            raise LLMEmptyResponseError("Empty response from OpenAI", details={"response": data})

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        model = data.get("model", request.model)
        usage = data.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens")
        completion_tokens = usage.get("completion_tokens")

        llm_latency_seconds.labels(model=model, success="true").observe(latency_ms / 1000.0)
        if prompt_tokens:
            llm_tokens_total.labels(model=model, token_type="prompt").inc(prompt_tokens)
        if completion_tokens:
            llm_tokens_total.labels(model=model, token_type="completion").inc(completion_tokens)

        logger.info(
            "Chat completion successful",
            model=model,
            latency_ms=latency_ms,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            finish_reason=choices[0].get("finish_reason"),
        )

        return ChatCompletionResponse(
            content=content,
            model=model,
            finish_reason=choices[0].get("finish_reason"),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=usage.get("total_tokens"),
            latency_ms=latency_ms,
            raw_metadata={"id": data.get("id"), "created": data.get("created")},
        )

    @staticmethod
    def _status_error(response: httpx.Response) -> Exception:
        """Map a non-2xx response to a tagged exception."""
        status_code = response.status_code
        try:
            body = response.json()
            upstream = (body.get("error") or {}).get("message") or response.text
        except (json.JSONDecodeError, AttributeError):
            upstream = response.text

        message = f"OpenAI API error: {status_code} - {upstream or response.reason_phrase}"
        details = {"status": status_code, "error": upstream}

        logger.error("OpenAI HTTP error", status_code=status_code, error_text=upstream)

        if status_code == 429:
            return LLMRateLimitError(message, details=details, status_code=status_code)
        if status_code >= 500:
            return LLMGenerationError(message, details=details, status_code=status_code)
        return LLMRequestError(message, details=details, status_code=status_code)

    @staticmethod
    def _observe(model: str, start_time: float, success: bool) -> None:
        llm_latency_seconds.labels(
            model=model, success="true" if success else "false"
        ).observe(time.perf_counter() - start_time)

    async def health_check(self) -> bool:
        """GET /models; True if the provider answers 2xx."""
        try:
            client = await self._get_client()
            response = await client.get("/models", timeout=5.0)
            response.raise_for_status()
            return True
        except Exception as e:
            logger.warning("OpenAI health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close HTTP client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.info("OpenAI client closed")
