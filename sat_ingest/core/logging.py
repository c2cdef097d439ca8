"""
Structured Logging Configuration with structlog

Outputs JSON logs that are searchable in Azure Monitor or any log sink.
Every log includes: project_id, version, stage, timestamp, and other context.
"""

import sys
import asyncio
import logging
import structlog
from typing import Optional, Any, Dict
from datetime import datetime, timezone
from contextvars import ContextVar
from functools import wraps

# Context variables for request-scoped logging
project_id_var: ContextVar[Optional[str]] = ContextVar("project_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)

# Application version
APP_VERSION = "1.0.0"


def add_app_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add application context to every log entry."""
    event_dict["version"] = APP_VERSION

    project_id = project_id_var.get()
    if project_id and "project_id" not in event_dict:
        event_dict["project_id"] = project_id

    stage = stage_var.get()
    if stage and "stage" not in event_dict:
        event_dict["stage"] = stage

    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO format timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = True,
):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; if False, output colored console logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Silence noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_timestamp,
            add_app_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.UnicodeDecoder(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager for setting logging context.

    Usage:
        with LogContext(project_id="abc123", stage="persist"):
            logger.info("batch_flushed")
    """

    def __init__(self, project_id: Optional[str] = None, stage: Optional[str] = None):
        self.project_id = project_id
        self.stage = stage
        self._project_id_token = None
        self._stage_token = None

    def __enter__(self):
        if self.project_id:
            self._project_id_token = project_id_var.set(self.project_id)
        if self.stage:
            self._stage_token = stage_var.set(self.stage)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._project_id_token:
            project_id_var.reset(self._project_id_token)
        if self._stage_token:
            stage_var.reset(self._stage_token)
        return False


def with_logging(stage: str):
    """
    Decorator to wrap a coroutine with stage logging.

    Usage:
        @with_logging("persist")
        async def persist(...):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            token = stage_var.set(stage)

            logger.info("stage_started", stage=stage)
            start_time = datetime.now(timezone.utc)

            try:
                result = await func(*args, **kwargs)
                duration_ms = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
                logger.info(
                    "stage_completed",
                    stage=stage,
                    duration_ms=duration_ms
                )
                return result
            except Exception as e:
                duration_ms = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
                logger.error(
                    "stage_failed",
                    stage=stage,
                    duration_ms=duration_ms,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise
            finally:
                stage_var.reset(token)

        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"with_logging only wraps coroutines, got {func!r}")
        return async_wrapper

    return decorator


# Example log output structure:
# {
#   "timestamp": "2024-05-20T10:00:00Z",
#   "level": "info",
#   "event": "batch_flushed",
#   "stage": "persist",
#   "project_id": "6650e8400e29b41d4a716446",
#   "version": "1.0.0",
#   "batch_size": 30,
#   "start_index": 60
# }
