"""
Integration tests for the claim detection service.

Test components together or against real external services:
- Claim repository against a running Redis (skipped when unavailable)
- API application wiring (FastAPI TestClient)
"""
