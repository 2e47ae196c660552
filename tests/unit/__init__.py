"""
Unit tests for the call-resilience layer.

Test individual components in isolation:
- Error classification and retry policy (injected sleep, clock and rng)
- Circuit breaker transitions and circuit stores
- Response envelopes and tolerant JSON parsing
- Auth gate and Supabase adapter (mocked client)
- OpenAI client error mapping (httpx.MockTransport)
"""
