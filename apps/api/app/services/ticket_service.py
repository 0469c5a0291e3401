"""Ticket visibility, lifecycle, and assignment services.

Visibility is hierarchy-scoped: an actor sees tickets assigned to users in
their subtree. Owners additionally see unassigned tickets through an
org-wide branch; Managers only when UNASSIGNED_VISIBLE_TO_MANAGERS is on.
Explicit filters are ANDed on top and can only narrow the result.
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.policies import (
    can_assign,
    can_escalate,
    sees_unassigned_tickets,
    self_assigns_new_tickets,
)
from app.core.structured_logging import build_log_context
from app.db.enums import (
    AuditEventType,
    CLOSED_STATUSES,
    TicketChannel,
    TicketPriority,
    TicketStatus,
)
from app.db.models import Customer, Ticket, User
from app.schemas.auth import UserSession
from app.services import (
    assignment_service,
    audit_service,
    counter_service,
    customer_service,
    hierarchy_service,
    notification_service,
)

logger = logging.getLogger(__name__)


class EscalationTargetMissingError(HTTPException):
    """Escalation requested by a user with no manager to hand the ticket to."""

    def __init__(self, user_id: UUID):
        super().__init__(
            status_code=422,
            detail="Escalation has no target: your account has no manager. Ask an owner to assign this ticket.",
        )
        self.user_id = user_id


@dataclass(frozen=True)
class TicketFilters:
    """Optional list filters; each one narrows the visible set."""

    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    channel: TicketChannel | None = None
    assignee_id: UUID | None = None
    customer_id: UUID | None = None
    q: str | None = None


@dataclass(frozen=True)
class TicketListPage:
    """List page result with cursor."""

    items: list[Ticket]
    next_cursor: str | None


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _encode_cursor(*, created_at: datetime, row_id: UUID) -> str:
    payload = {"created_at": created_at.isoformat(), "id": str(row_id)}
    return base64.urlsafe_b64encode(json.dumps(payload).encode("utf-8")).decode("utf-8")


def _decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    try:
        decoded = base64.urlsafe_b64decode(cursor.encode("utf-8")).decode("utf-8")
        payload = json.loads(decoded)
        created_at = datetime.fromisoformat(payload["created_at"])
        row_id = UUID(payload["id"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at, row_id
    except Exception as exc:
        raise HTTPException(status_code=400, detail="Invalid cursor") from exc


def ticket_event_payload(ticket: Ticket) -> dict[str, Any]:
    """Realtime payload for ticket events (no customer PII)."""
    return {
        "id": str(ticket.id),
        "ticket_number": ticket.ticket_number,
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "assignee_id": str(ticket.assignee_id) if ticket.assignee_id else None,
        "updated_at": ticket.updated_at.isoformat() if ticket.updated_at else None,
    }


# =============================================================================
# Visibility
# =============================================================================


def visibility_clause(session: UserSession, subtree: Collection[UUID]):
    """Base predicate for tickets the actor may see."""
    clause = and_(
        Ticket.organization_id == session.org_id,
        Ticket.assignee_id.in_(list(subtree)),
    )
    if sees_unassigned_tickets(
        session.role, managers_allowed=settings.UNASSIGNED_VISIBLE_TO_MANAGERS
    ):
        clause = or_(
            clause,
            and_(Ticket.organization_id == session.org_id, Ticket.assignee_id.is_(None)),
        )
    return clause


def visible_tickets(
    db: Session,
    session: UserSession,
    *,
    filters: TicketFilters | None = None,
    limit: int = 50,
    cursor: str | None = None,
) -> TicketListPage:
    """List the actor's visible tickets, newest first, with cursor pagination."""
    filters = filters or TicketFilters()
    page_limit = max(1, min(limit, 100))
    subtree = hierarchy_service.session_subtree(db, session)

    query = (
        select(Ticket)
        .where(visibility_clause(session, subtree))
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .limit(page_limit + 1)
    )

    if filters.status:
        query = query.where(Ticket.status == filters.status)
    if filters.priority:
        query = query.where(Ticket.priority == filters.priority)
    if filters.channel:
        query = query.where(Ticket.channel == filters.channel)
    if filters.assignee_id:
        query = query.where(Ticket.assignee_id == filters.assignee_id)
    if filters.customer_id:
        query = query.where(Ticket.customer_id == filters.customer_id)
    if filters.q and filters.q.strip():
        search = f"%{filters.q.strip()}%"
        query = query.where(
            or_(
                Ticket.subject.ilike(search),
                Ticket.ticket_number.ilike(search),
            )
        )

    if cursor:
        cursor_created_at, cursor_id = _decode_cursor(cursor)
        query = query.where(
            or_(
                Ticket.created_at < cursor_created_at,
                and_(Ticket.created_at == cursor_created_at, Ticket.id < cursor_id),
            )
        )

    rows = list(db.execute(query).scalars())
    has_more = len(rows) > page_limit
    items = rows[:page_limit]

    next_cursor = None
    if has_more and items:
        last = items[-1]
        next_cursor = _encode_cursor(created_at=last.created_at, row_id=last.id)

    return TicketListPage(items=items, next_cursor=next_cursor)


def get_visible_ticket(
    db: Session,
    session: UserSession,
    ticket_id: UUID,
    *,
    subtree: Collection[UUID] | None = None,
) -> Ticket:
    """Fetch a ticket the actor can see; 404 otherwise (existence is not revealed)."""
    if subtree is None:
        subtree = hierarchy_service.session_subtree(db, session)
    ticket = db.execute(
        select(Ticket).where(Ticket.id == ticket_id, visibility_clause(session, subtree))
    ).scalar_one_or_none()
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


def _get_org_user(db: Session, org_id: UUID, user_id: UUID) -> User:
    user = db.execute(
        select(User).where(User.id == user_id, User.organization_id == org_id)
    ).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=422, detail="Cannot assign to a deactivated user")
    return user


# =============================================================================
# Creation
# =============================================================================


def insert_ticket(
    db: Session,
    *,
    org_id: UUID,
    customer: Customer,
    subject: str,
    channel: TicketChannel,
    description: str | None = None,
    priority: TicketPriority = TicketPriority.MEDIUM,
    assignee_id: UUID | None = None,
    created_by_id: UUID | None = None,
) -> Ticket:
    """Allocate a ticket number and add the ticket. Flushes, does not commit."""
    subject = (subject or "").strip()
    if not subject:
        raise HTTPException(status_code=422, detail="Ticket subject is required")

    ticket = Ticket(
        organization_id=org_id,
        ticket_number=counter_service.generate_ticket_number(db, org_id),
        subject=subject[:500],
        description=description,
        status=TicketStatus.OPEN,
        priority=priority,
        channel=channel,
        assignee_id=assignee_id,
        customer_id=customer.id,
        created_by_id=created_by_id,
    )
    db.add(ticket)
    db.flush()
    return ticket


def create_ticket(
    db: Session,
    session: UserSession,
    *,
    customer_id: UUID,
    subject: str,
    channel: TicketChannel = TicketChannel.PORTAL,
    description: str | None = None,
    priority: TicketPriority = TicketPriority.MEDIUM,
    assignee_id: UUID | None = None,
) -> Ticket:
    """
    Create a ticket on behalf of an agent UI user.

    Agents cannot assign, so tickets they open are always their own.
    """
    customer = customer_service.get_customer(db, session.org_id, customer_id)
    subtree = hierarchy_service.session_subtree(db, session)

    if self_assigns_new_tickets(session.role):
        if assignee_id not in (None, session.user_id):
            raise HTTPException(status_code=403, detail="Not allowed to assign to this user")
        assignee_id = session.user_id
    elif assignee_id is not None:
        _get_org_user(db, session.org_id, assignee_id)
        if not can_assign(session.role, subtree, assignee_id):
            raise HTTPException(status_code=403, detail="Not allowed to assign to this user")

    ticket = insert_ticket(
        db,
        org_id=session.org_id,
        customer=customer,
        subject=subject,
        channel=channel,
        description=description,
        priority=priority,
        assignee_id=assignee_id,
        created_by_id=session.user_id,
    )
    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.TICKET_CREATED,
        actor_user_id=session.user_id,
        target_type="ticket",
        target_id=ticket.id,
        details={"channel": channel.value, "assignee_id": str(assignee_id) if assignee_id else None},
    )
    db.commit()
    db.refresh(ticket)

    notification_service.emit_to_ticket(
        ticket.id, notification_service.TICKET_CREATED, ticket_event_payload(ticket)
    )
    return ticket


# =============================================================================
# Updates
# =============================================================================


def update_ticket(
    db: Session,
    session: UserSession,
    ticket_id: UUID,
    *,
    status: TicketStatus | None = None,
    priority: TicketPriority | None = None,
    subject: str | None = None,
) -> Ticket:
    """
    Update mutable ticket fields.

    Any status may follow any other; resolved_at tracks entry into (and exit
    from) the closed statuses.
    """
    ticket = get_visible_ticket(db, session, ticket_id)
    changes: dict[str, str | None] = {}

    if status is not None and ticket.status != status:
        changes["status"] = status.value
        ticket.status = status
        if status in CLOSED_STATUSES:
            ticket.resolved_at = ticket.resolved_at or _now_utc()
        else:
            ticket.resolved_at = None

    if priority is not None and ticket.priority != priority:
        changes["priority"] = priority.value
        ticket.priority = priority

    if subject is not None:
        subject = subject.strip()
        if not subject:
            raise HTTPException(status_code=422, detail="Ticket subject is required")
        if subject != ticket.subject:
            changes["subject"] = "changed"
            ticket.subject = subject[:500]

    if not changes:
        return ticket

    ticket.updated_at = _now_utc()
    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.TICKET_UPDATED,
        actor_user_id=session.user_id,
        target_type="ticket",
        target_id=ticket.id,
        details={"changes": changes},
    )
    db.commit()
    db.refresh(ticket)

    notification_service.emit_to_ticket(
        ticket.id, notification_service.TICKET_UPDATED, ticket_event_payload(ticket)
    )
    return ticket


# =============================================================================
# Assignment
# =============================================================================


def assign_ticket(
    db: Session,
    session: UserSession,
    ticket_id: UUID,
    assignee_id: UUID,
) -> Ticket:
    """
    Directly assign a ticket.

    Owners may assign to anyone in the org, Managers within their subtree,
    Agents never (they escalate instead).
    """
    subtree = hierarchy_service.session_subtree(db, session)
    if not can_assign(session.role, subtree, assignee_id):
        raise HTTPException(status_code=403, detail="Not allowed to assign to this user")

    ticket = get_visible_ticket(db, session, ticket_id, subtree=subtree)
    _get_org_user(db, session.org_id, assignee_id)

    previous = ticket.assignee_id
    if previous == assignee_id:
        return ticket

    ticket.assignee_id = assignee_id
    ticket.updated_at = _now_utc()
    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.TICKET_ASSIGNED,
        actor_user_id=session.user_id,
        target_type="ticket",
        target_id=ticket.id,
        details={
            "from_assignee_id": str(previous) if previous else None,
            "to_assignee_id": str(assignee_id),
        },
    )
    db.commit()
    db.refresh(ticket)

    notification_service.emit_to_ticket(
        ticket.id, notification_service.TICKET_ASSIGNED, ticket_event_payload(ticket)
    )
    return ticket


def escalate_ticket(db: Session, session: UserSession, ticket_id: UUID) -> Ticket:
    """Hand a ticket to the acting Agent's nearest active manager up the created-by chain."""
    if not can_escalate(session.role):
        raise HTTPException(
            status_code=403, detail="Only agents escalate; assign the ticket directly instead"
        )

    ticket = get_visible_ticket(db, session, ticket_id)
    manager_id = hierarchy_service.escalation_target(db, session.user_id, session.org_id)
    if manager_id is None:
        logger.warning(
            "Escalation without a manager",
            extra=build_log_context(
                user_id=session.user_id, org_id=session.org_id, ticket_id=ticket.id
            ),
        )
        raise EscalationTargetMissingError(session.user_id)

    ticket.assignee_id = manager_id
    ticket.updated_at = _now_utc()
    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.TICKET_ESCALATED,
        actor_user_id=session.user_id,
        target_type="ticket",
        target_id=ticket.id,
        details={"from_assignee_id": str(session.user_id), "to_assignee_id": str(manager_id)},
    )
    db.commit()
    db.refresh(ticket)

    notification_service.emit_to_ticket(
        ticket.id, notification_service.TICKET_ASSIGNED, ticket_event_payload(ticket)
    )
    return ticket


def auto_assign_ticket(
    db: Session,
    ticket: Ticket,
    *,
    cursor: assignment_service.RotationCursor | None = None,
) -> UUID | None:
    """
    Round-robin an unassigned ticket to the next agent. Does not commit.

    With no agents in the org the ticket stays unassigned for manual pickup.
    """
    agent_id = assignment_service.next_agent(db, ticket.organization_id, cursor=cursor)
    if agent_id is None:
        return None

    ticket.assignee_id = agent_id
    ticket.updated_at = _now_utc()
    audit_service.log_event(
        db=db,
        org_id=ticket.organization_id,
        event_type=AuditEventType.TICKET_AUTO_ASSIGNED,
        target_type="ticket",
        target_id=ticket.id,
        details={"to_assignee_id": str(agent_id)},
    )
    return agent_id
