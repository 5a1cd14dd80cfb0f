"""
Unit tests for the claim detection service.

Test individual components in isolation:
- Response normalizer and exclusion filter
- Analysis dispatcher (sequential pacing, bounded fan-out, failure isolation)
- Processing pipeline (single-flight, dedup, error aggregation, run recording)
- Completion clients and mail source (httpx MockTransport)
- Claim repository (in-memory Redis fake)
- API routes and error mapping
"""
