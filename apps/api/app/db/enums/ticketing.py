"""Ticketing and messaging enums."""

from enum import Enum


class TicketStatus(str, Enum):
    """Ticket lifecycle status (conventional order, not enforced)."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    """Ticket priority level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketChannel(str, Enum):
    """Channel a ticket originated from."""

    EMAIL = "email"
    CHAT = "chat"
    PHONE = "phone"
    SOCIAL = "social"
    PORTAL = "portal"


class MessageSender(str, Enum):
    """Author kind for a conversation message."""

    CUSTOMER = "customer"
    AGENT = "agent"
    AI = "ai"


CLOSED_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})
