"""FastAPI dependencies for database access and the workflow policy."""

import logging
from typing import Generator

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from matchslot.core.structured_logging import build_log_context
from matchslot.db.session import SessionLocal
from matchslot.services.approval_service import WorkflowPolicy
from matchslot.services.errors import (
    BookingError,
    NotFoundError,
    OfferNotOpenError,
    PersistenceError,
    SlotUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_workflow_policy() -> WorkflowPolicy:
    """Workflow policy from current settings (read per request)."""
    return WorkflowPolicy.from_settings()


def booking_http_error(exc: BookingError, request: Request | None = None) -> HTTPException:
    """Map a booking workflow error to its HTTP response."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=f"{exc.entity} not found")
    if isinstance(exc, OfferNotOpenError):
        return HTTPException(status_code=409, detail="Offer Not Open")
    if isinstance(exc, SlotUnavailableError):
        return HTTPException(status_code=409, detail="Slot Unavailable")
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"message": str(exc), "field": exc.field})
    if isinstance(exc, PersistenceError):
        context = {}
        if request is not None:
            context = build_log_context(route=request.url.path, method=request.method)
        logger.error("Request failed on storage: %s", exc, extra=context)
        return HTTPException(status_code=503, detail="Service temporarily unavailable")
    return HTTPException(status_code=400, detail=str(exc))
