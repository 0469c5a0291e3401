"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    user_id: UUID | str | None = None,
    org_id: UUID | str | None = None,
    ticket_id: UUID | str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    channel: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict carrying identifiers only (no emails, no bodies)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if org_id:
        context["org_id"] = str(org_id)
    if ticket_id:
        context["ticket_id"] = str(ticket_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if channel:
        context["channel"] = channel
    return context
