"""Pydantic schemas for tickets and ticket messages."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.db.enums import MessageSender, TicketChannel, TicketPriority, TicketStatus


class TicketRead(BaseModel):
    """Ticket as returned by list/detail/mutation endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ticket_number: str
    subject: str
    description: str | None = None
    status: TicketStatus
    priority: TicketPriority
    channel: TicketChannel
    assignee_id: UUID | None = None
    customer_id: UUID
    created_by_id: UUID | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TicketCreateRequest(BaseModel):
    customer_id: UUID
    subject: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50_000)
    priority: TicketPriority = TicketPriority.MEDIUM
    channel: TicketChannel = TicketChannel.PORTAL
    assignee_id: UUID | None = None


class TicketPatchRequest(BaseModel):
    """Status/priority/subject update. Assignment has its own endpoint."""

    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    subject: str | None = Field(default=None, min_length=1, max_length=500)


class TicketAssignRequest(BaseModel):
    assignee_id: UUID


class MessageRead(BaseModel):
    """Conversation entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ticket_id: UUID | None = None
    customer_id: UUID | None = None
    sender_type: MessageSender
    sender_user_id: UUID | None = None
    channel: TicketChannel
    body: str
    created_at: datetime


class MessageCreateRequest(BaseModel):
    body: str = Field(min_length=1, max_length=50_000)
