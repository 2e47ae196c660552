"""
Resilient outbound-call layer for serverless chat, document and job functions.

Funnels every outbound network operation through:
- Error classification (TEMPORARY / PERMANENT / RATE_LIMIT / UNKNOWN)
- Retry with exponential backoff and jitter
- Per-dependency circuit breaking with fallbacks
- Uniform success/error/warning response envelopes

Architecture: FastAPI shell + auth gate + breaker(retry(operation)) + response formatter
"""

__version__ = "0.1.0"
