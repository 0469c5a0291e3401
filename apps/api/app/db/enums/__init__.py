"""Enum definitions for application constants."""

from app.db.enums.audit import AuditEventType
from app.db.enums.auth import Role
from app.db.enums.ticketing import (
    CLOSED_STATUSES,
    MessageSender,
    TicketChannel,
    TicketPriority,
    TicketStatus,
)

__all__ = [
    "AuditEventType",
    "CLOSED_STATUSES",
    "MessageSender",
    "Role",
    "TicketChannel",
    "TicketPriority",
    "TicketStatus",
]
