"""
Response envelopes and formatting helpers.

- envelope.py: ResponseEnvelope / ResponseMeta models
- formatter.py: ResponseFormatter builders, fallback content, safe JSON parsing
"""

from call_resilience.formatting.envelope import ResponseEnvelope, ResponseMeta, utc_timestamp
from call_resilience.formatting.formatter import JSONParseResult, ResponseFormatter

__all__ = [
    "ResponseEnvelope",
    "ResponseMeta",
    "ResponseFormatter",
    "JSONParseResult",
    "utc_timestamp",
]
