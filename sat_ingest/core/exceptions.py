"""
Global Exception Handling

Error taxonomy for the ingestion pipeline and the pod orchestrator, plus
FastAPI handlers that render failures as plain text messages.
"""

from typing import Optional, Dict, Any
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from sat_ingest.core.logging import get_logger, project_id_var

logger = get_logger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class SatIngestError(Exception):
    """Base exception for the ingestion service."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        project_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.project_id = project_id or project_id_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(SatIngestError):
    """Raised when an image exceeds the configured byte-size or pixel-area limit."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class InvalidImageError(SatIngestError):
    """Raised when an image has no usable dimensions or format."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=422, **kwargs)


class NotFoundError(SatIngestError):
    """Raised when a referenced record or object does not exist."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=404, **kwargs)


class ProjectNotFoundError(NotFoundError):

    def __init__(self, project_id: str, **kwargs):
        super().__init__(f"Project {project_id} not found", project_id=project_id, **kwargs)


class ObjectNotFoundError(NotFoundError):

    def __init__(self, container: str, path: str, **kwargs):
        super().__init__(f"Object {container}/{path} not found", **kwargs)
        self.details["container"] = container
        self.details["path"] = path


class UpdateConflictError(SatIngestError):
    """Raised when a project update matches no document."""

    def __init__(self, project_id: str, **kwargs):
        super().__init__(
            f"Project {project_id} update matched no document",
            code=409,
            project_id=project_id,
            **kwargs
        )


class TransportError(SatIngestError):
    """Raised when an external service call fails for a reason other than not-found."""

    def __init__(self, message: str, service: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, code=502, **kwargs)
        self.details["service"] = service
        self.details["http_status"] = http_status


class StorageError(TransportError):

    def __init__(self, message: str, **kwargs):
        super().__init__(message, service="object_store", **kwargs)


class DocumentStoreError(TransportError):

    def __init__(self, message: str, **kwargs):
        super().__init__(message, service="document_store", **kwargs)


class PodPlatformError(TransportError):

    def __init__(self, message: str, **kwargs):
        super().__init__(message, service="pod_platform", **kwargs)


class PodDeleteError(PodPlatformError):

    def __init__(self, pod_name: str, reason: str, **kwargs):
        super().__init__(f"Delete pod {pod_name} error: {reason}", **kwargs)
        self.details["pod_name"] = pod_name


class PodReadinessTimeoutError(SatIngestError):
    """Raised when a forced pod does not reach Running within the retry budget."""

    def __init__(self, pod_name: str, attempts: int, **kwargs):
        super().__init__(
            f"Pod {pod_name} not running after {attempts} attempts",
            code=504,
            **kwargs
        )
        self.details["pod_name"] = pod_name
        self.details["attempts"] = attempts


# =============================================================================
# Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI):
    """Register plain-text exception handlers with the FastAPI app."""

    @app.exception_handler(SatIngestError)
    async def sat_ingest_exception_handler(request: Request, exc: SatIngestError):
        logger.error(
            "sat_ingest_exception",
            error=exc.message,
            code=exc.code,
            stage=exc.stage,
            details=exc.details,
            path=str(request.url.path)
        )
        return PlainTextResponse(str(exc), status_code=exc.code)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            exc_info=True
        )
        return PlainTextResponse(f"Error: {exc}", status_code=500)
