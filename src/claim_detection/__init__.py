"""
Claim Detection Service.

Scans a mailbox for customer complaints ("claims"): retrieves new messages,
skips already-recorded and excluded senders, asks an LLM backend (hosted
Azure OpenAI or a self-hosted server) for a structured verdict, normalizes
it and records every message, verdict and processing run.

Architecture: FastAPI + Celery beat orchestrator, Redis store, httpx clients
"""

__version__ = "0.1.0"
