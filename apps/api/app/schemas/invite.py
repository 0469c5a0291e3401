"""Pydantic schemas for invitations."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.db.enums import Role


class InviteCreate(BaseModel):
    email: EmailStr
    role: Role


class InviteRead(BaseModel):
    id: UUID
    email: str
    role: Role
    invited_by_user_id: UUID
    status: Literal["pending", "accepted", "expired", "revoked"]
    expires_at: datetime | None = None
    created_at: datetime


class InviteCreated(InviteRead):
    """Returned once to the inviter; carries the link to share."""

    accept_url: str


class InviteAccept(BaseModel):
    token: str = Field(min_length=16, max_length=64)
    display_name: str = Field(min_length=1, max_length=255)
