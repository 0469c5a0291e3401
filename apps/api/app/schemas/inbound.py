"""Pydantic schemas for customer-originated messages (email webhook + widget)."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class InboundEmailRequest(BaseModel):
    """Normalized inbound email posted by the mail provider webhook."""

    organization_slug: str = Field(min_length=2, max_length=100)
    from_email: EmailStr
    from_name: str | None = Field(default=None, max_length=255)
    subject: str | None = Field(default=None, max_length=500)
    text: str = Field(min_length=1, max_length=50_000)


class WidgetMessageRequest(BaseModel):
    email: EmailStr
    name: str | None = Field(default=None, max_length=255)
    message: str = Field(min_length=1, max_length=10_000)


class InboundResponse(BaseModel):
    """Outcome shown to the customer (widget) or the mail pipeline."""

    resolved: bool
    response: str | None = None
    ticket_id: UUID | None = None
    ticket_number: str | None = None
