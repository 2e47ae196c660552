"""
LLM client layer.

Provider clients perform exactly one HTTP round trip per call and raise
kind-tagged exceptions; resilience is applied by the caller.
"""

from call_resilience.llm.base_client import BaseLLMClient
from call_resilience.llm.exceptions import (
    LLMClientError,
    LLMConnectionError,
    LLMEmptyResponseError,
    LLMGenerationError,
    LLMRateLimitError,
    LLMRequestError,
    LLMTimeoutError,
)
from call_resilience.llm.openai_client import OpenAIClient

__all__ = [
    "BaseLLMClient",
    "OpenAIClient",
    "LLMClientError",
    "LLMConnectionError",
    "LLMTimeoutError",
    "LLMRateLimitError",
    "LLMGenerationError",
    "LLMRequestError",
    "LLMEmptyResponseError",
]
