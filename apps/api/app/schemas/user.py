"""Pydantic schemas for directory users."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.db.enums import Role


class UserRead(BaseModel):
    """User row as visible to someone whose subtree contains it."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    display_name: str
    title: str | None = None
    avatar_url: str | None = None
    role: Role
    created_by_id: UUID | None = None
    is_active: bool
    created_at: datetime


class UserProfileUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    title: str | None = Field(default=None, max_length=100)
    avatar_url: str | None = Field(default=None, max_length=500)


class UserRoleUpdate(BaseModel):
    role: Role
