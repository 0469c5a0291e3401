"""SQLAlchemy ORM models."""

from app.db.models.audit import AuditLog
from app.db.models.auth import Invite, Organization, User
from app.db.models.ticketing import Customer, Message, OrgCounter, Ticket

__all__ = [
    "AuditLog",
    "Customer",
    "Invite",
    "Message",
    "OrgCounter",
    "Organization",
    "Ticket",
    "User",
]
