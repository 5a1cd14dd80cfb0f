"""
FastAPI API routes and endpoints.

- routes.py: Processing, reporting, backend management and health endpoints
- dependencies.py: Dependency injection for the pipeline, repository and clients
- models.py: API-specific response models
- error_handlers.py: Exception handlers for structured error responses
- middleware.py: Request tracing
"""

from claim_detection.api import dependencies, error_handlers, models
from claim_detection.api.routes import router

__all__ = [
    "router",
    "dependencies",
    "error_handlers",
    "models",
]
