"""Audit router - API endpoints for viewing audit logs."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db
from app.core.policies import can_view_audit
from app.db.enums import AuditEventType
from app.schemas.audit import AuditLogRead
from app.schemas.auth import UserSession
from app.schemas.common import DataResponse, PageResponse, Pagination
from app.services import audit_service

router = APIRouter(prefix="/audit", tags=["Audit"])


def require_audit_viewer(session: UserSession = Depends(get_current_session)) -> UserSession:
    if not can_view_audit(session.role):
        raise HTTPException(
            status_code=403,
            detail=f"Role '{session.role.value}' not authorized for this action",
        )
    return session


@router.get("", response_model=PageResponse[AuditLogRead])
def list_audit_logs(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    event_type: AuditEventType | None = Query(None, description="Filter by event type"),
    target_id: UUID | None = Query(None, description="Filter by target"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_audit_viewer),
):
    """List audit log entries for the organization, newest first (Owners only)."""
    rows, total = audit_service.list_events(
        db,
        session.org_id,
        event_type=event_type.value if event_type else None,
        target_id=target_id,
        limit=limit,
        offset=offset,
    )
    return PageResponse(
        data=[AuditLogRead.model_validate(row) for row in rows],
        pagination=Pagination(limit=limit, offset=offset, total=total),
    )


@router.get("/event-types", response_model=DataResponse[list[str]])
def list_event_types(session: UserSession = Depends(require_audit_viewer)):
    """List available audit event types for filtering."""
    return DataResponse(data=[e.value for e in AuditEventType])
