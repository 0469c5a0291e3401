"""Pydantic schemas for audit log reads."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_user_id: UUID | None = None
    event_type: str
    target_type: str | None = None
    target_id: UUID | None = None
    details: dict | None = None
    ip_address: str | None = None
    created_at: datetime
