"""
Abstract base client for LLM chat completion.

Defines the interface every provider client implements, so the generation
service and the resilience wrappers never depend on one provider.
"""

from abc import ABC, abstractmethod

import structlog

from call_resilience.models.llm_models import ChatCompletionRequest, ChatCompletionResponse

logger = structlog.get_logger(__name__)


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Responsibilities:
    - Send one chat completion request per call
    - Map provider errors to tagged LLMClientError subclasses

    Does NOT handle:
    - Retries (RetryExecutor's job)
    - Circuit breaking (CircuitBreaker's job)
    - JSON extraction from the reply (ResponseFormatter's job)
    """

    def __init__(self, base_url: str, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        logger.info(
            "Initialized LLM client",
            client_class=self.__class__.__name__,
            base_url=self.base_url,
            timeout=timeout,
        )

    @abstractmethod
    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """
        Run one chat completion.

        Raises:
            LLMConnectionError: Network errors
            LLMTimeoutError: Request exceeded timeout
            LLMRateLimitError: Provider throttled the request
            LLMGenerationError: Provider-side failure
            LLMRequestError: Request rejected
            LLMEmptyResponseError: No assistant content returned
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Lightweight reachability check.

        Note:
            Must not raise - returns False on error.
        """

    async def close(self) -> None:
        """Release pooled connections. Default implementation does nothing."""
        logger.debug("Closing LLM client", client_class=self.__class__.__name__)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url={self.base_url}, timeout={self.timeout}s)"
