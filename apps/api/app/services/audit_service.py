"""Audit logging service - mutation and security event tracking.

Guidelines:
- NEVER log secrets (API keys, tokens)
- Hash emails in details (use hash_email)
- Use IDs instead of message bodies or names
"""

import hashlib
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import AuditEventType
from app.db.models import AuditLog


def hash_email(email: str) -> str:
    """Hash email for audit log (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    """
    if not request:
        return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def log_event(
    db: Session,
    org_id: UUID,
    event_type: AuditEventType,
    actor_user_id: UUID | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog:
    """
    Add an audit entry to the current transaction.

    The caller commits together with the mutation being audited, so an entry
    exists exactly when the change does.
    """
    entry = AuditLog(
        organization_id=org_id,
        actor_user_id=actor_user_id,
        event_type=event_type.value,
        target_type=target_type,
        target_id=target_id,
        details=details,
        ip_address=get_client_ip(request),
    )
    db.add(entry)
    return entry


def list_events(
    db: Session,
    org_id: UUID,
    *,
    event_type: str | None = None,
    target_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    """List audit entries newest first, with total count."""
    query = select(AuditLog).where(AuditLog.organization_id == org_id)
    if event_type:
        query = query.where(AuditLog.event_type == event_type)
    if target_id:
        query = query.where(AuditLog.target_id == target_id)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
    rows = db.execute(
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).offset(offset)
    ).scalars()
    return list(rows), total
