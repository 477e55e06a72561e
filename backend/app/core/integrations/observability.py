"""
Observability hooks.
Exceptions and scheduler failures are funnelled through here so an
OpenTelemetry/Sentry exporter can be attached in one place.
"""

from typing import Optional
from uuid import UUID
from fastapi import Request
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def setup_observability() -> None:
    """
    Initialize observability stack.

    Only structured logging is wired today; an OTLP exporter can be added here
    using OTEL_EXPORTER_OTLP_ENDPOINT and OTEL_SERVICE_NAME.
    """
    logger.info(
        "Setting up observability",
        extra={
            "otel_endpoint": settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            "service_name": settings.OTEL_SERVICE_NAME,
        },
    )


def record_exception(exc: Exception, request: Request) -> None:
    """
    Record a request-scoped exception.

    Args:
        exc: The exception that occurred
        request: The FastAPI request object
    """
    logger.error(
        f"Exception recorded: {type(exc).__name__}",
        extra={
            "exception_message": str(exc),
            "path": request.url.path,
        },
    )


def record_background_failure(
    job: str,
    exc: Exception,
    permit_id: Optional[UUID] = None,
) -> None:
    """
    Record a failure inside a background job (no request available).

    Args:
        job: Name of the job, e.g. "reminder_scan"
        exc: The exception that occurred
        permit_id: Permit being processed when the failure happened
    """
    logger.error(
        f"Background job failure in {job}: {type(exc).__name__}",
        extra={
            "job": job,
            "exception_message": str(exc),
            "permit_id": str(permit_id) if permit_id else None,
        },
    )
