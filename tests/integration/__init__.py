"""
Integration tests for the call-resilience layer.

Test components together through the HTTP surface:
- API endpoints (FastAPI TestClient with dependency overrides)
- Real breaker, retry executor and formatter around a mocked LLM client
"""
