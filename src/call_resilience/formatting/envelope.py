"""
Response envelope models.

Every boundary operation returns a ResponseEnvelope so clients branch on
``success`` / ``meta.status`` only, never on HTTP status codes.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from call_resilience.models.enums import ResponseStatus


def utc_timestamp() -> str:
    """Current UTC time as ISO 8601 (millisecond precision, ``Z`` suffix)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ResponseMeta(BaseModel):
    """
    Envelope metadata.

    Extra keys (``fallback_reason``, ``error_type``, ``performance``...) are
    accepted and serialized as given.
    """

    model_config = ConfigDict(extra="allow", use_enum_values=False)

    status: ResponseStatus
    timestamp: str = Field(default_factory=utc_timestamp)
    response_time_ms: Optional[int] = Field(default=None, ge=0)
    server_session_id: Optional[str] = None
    client_session_id: Optional[str] = None


class ResponseEnvelope(BaseModel):
    """
    Uniform wrapper for success, warning and error results.

    Invariant: ``success=True`` requires status OK or WARNING;
    ``success=False`` requires status ERROR.
    """

    success: bool
    content: Optional[Any] = None
    error: Optional[str] = None
    details: Optional[str] = None
    meta: ResponseMeta

    @model_validator(mode="after")
    def check_status_consistency(self) -> "ResponseEnvelope":
        """Reject envelopes whose success flag contradicts meta.status."""
        if self.success and self.meta.status is ResponseStatus.ERROR:
            raise ValueError("success=True requires meta.status OK or WARNING")
        if not self.success and self.meta.status is not ResponseStatus.ERROR:
            raise ValueError("success=False requires meta.status ERROR")
        return self

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict without unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)
