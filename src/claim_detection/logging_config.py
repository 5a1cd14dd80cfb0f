"""Structured logging for the API process and Celery workers.

Every event carries the service name, version and environment. Events
emitted during a pipeline run also carry the run_id/backend bound by the
orchestrator (and task_id inside a Celery task), merged from contextvars.

Production renders one JSON object per line; any other environment uses
structlog's console renderer. Standard library loggers (uvicorn, celery,
redis, httpx) are routed through the same formatter, with per-library
levels taken from Settings.LIBRARY_LOG_LEVELS.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from claim_detection.config import Settings


class ServiceContext:
    """Processor stamping service identity onto each event."""

    def __init__(self, service: str, version: str, environment: str):
        self.service = service
        self.version = version
        self.environment = environment

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", self.service)
        event_dict.setdefault("version", self.version)
        event_dict.setdefault("env", self.environment)
        return event_dict


def is_production(environment: str) -> bool:
    return environment.strip().lower() == "production"


def build_renderer(environment: str) -> Processor:
    """JSONRenderer in production, ConsoleRenderer elsewhere."""
    if is_production(environment):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def build_shared_processors(settings: Settings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        ServiceContext(settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT),
    ]
    if is_production(settings.ENVIRONMENT):
        # JSON needs the traceback as a string field
        processors.append(structlog.processors.format_exc_info)
    return processors


def configure_logging(settings: Settings, stream=None) -> logging.Handler:
    """Configure structlog and the root logger from Settings.

    Args:
        settings: Application settings (LOG_LEVEL, ENVIRONMENT, LIBRARY_LOG_LEVELS)
        stream: Output stream for the root handler (default: stdout)

    Returns:
        The installed root handler
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    shared_processors = build_shared_processors(settings)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=build_renderer(settings.ENVIRONMENT),
        foreign_pre_chain=shared_processors,
    ))
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name, library_level in settings.LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(library_level.upper())

    structlog.get_logger(__name__).info(
        "Logging configured",
        log_level=settings.LOG_LEVEL,
        renderer="json" if is_production(settings.ENVIRONMENT) else "console",
    )
    return handler
