"""
LLM-specific data models for the chat completion cycle.

Provider-agnostic: the OpenAI client maps these to and from the wire
format, business code only sees these models.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Single chat turn."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletionRequest(BaseModel):
    """
    Internal request model for chat completion.

    Sent unchanged to any BaseLLMClient implementation.
    """

    model_config = ConfigDict(frozen=True)

    messages: list[ChatMessage] = Field(..., min_length=1)
    model: str = Field(..., description="Model identifier (e.g., 'gpt-4.1-2025-04-14')")
    max_tokens: int = Field(default=2000, ge=1, description="Maximum completion tokens")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    json_mode: bool = Field(default=False, description="Request a JSON object response format")


class ChatCompletionResponse(BaseModel):
    """
    Internal response model from chat completion.

    Contains the generated text plus metadata for logging.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="Assistant message text")
    model: str = Field(..., description="Model reported by the provider")
    finish_reason: Optional[str] = Field(default=None, description="'stop', 'length', ...")
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    latency_ms: int = Field(..., ge=0, description="Round-trip latency in milliseconds")
    raw_metadata: dict[str, Any] = Field(default_factory=dict)
