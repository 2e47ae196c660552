"""
Shared data models.

- enums.py: ErrorKind, CircuitStatus, ResponseStatus
- llm_models.py: Chat completion request/response models
"""

from call_resilience.models.enums import CircuitStatus, ErrorKind, ResponseStatus
from call_resilience.models.llm_models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
)

__all__ = [
    "CircuitStatus",
    "ErrorKind",
    "ResponseStatus",
    "ChatMessage",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
]
