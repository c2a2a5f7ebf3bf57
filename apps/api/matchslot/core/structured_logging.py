"""Structured logging helpers (contact-safe).

Log records carry entity ids only. Names, clubs, emails and phone numbers
never go into a log context.
"""

import logging
from typing import Any
from uuid import UUID


def build_log_context(
    *,
    offer_id: UUID | str | None = None,
    slot_id: UUID | str | None = None,
    approval_id: UUID | str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a contact-safe log context dict."""
    context: dict[str, Any] = {}
    if offer_id:
        context["offer_id"] = str(offer_id)
    if slot_id:
        context["slot_id"] = str(slot_id)
    if approval_id:
        context["approval_id"] = str(approval_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process and the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
