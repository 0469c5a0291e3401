"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    org_id: UUID
    role: str
    token_version: int


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    This is the actor every service receives: identity, tenant, and role.
    """
    user_id: UUID
    org_id: UUID
    role: Role  # Validated enum
    email: str
    display_name: str


class SignupRequest(BaseModel):
    """Self-serve organization bootstrap."""
    organization_name: str = Field(min_length=1, max_length=255)
    organization_slug: str = Field(min_length=2, max_length=100, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    email: EmailStr
    display_name: str = Field(min_length=1, max_length=255)


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    display_name: str
    org_id: UUID
    org_name: str
    org_slug: str
    role: Role
    manager_id: UUID | None = None
