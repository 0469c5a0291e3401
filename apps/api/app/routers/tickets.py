"""Ticket inbox/detail/assignment/message APIs."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header
from app.db.enums import TicketChannel, TicketPriority, TicketStatus
from app.schemas.auth import UserSession
from app.schemas.common import DataResponse, PageResponse, Pagination
from app.schemas.ticketing import (
    MessageCreateRequest,
    MessageRead,
    TicketAssignRequest,
    TicketCreateRequest,
    TicketPatchRequest,
    TicketRead,
)
from app.services import message_service, ticket_service

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("", response_model=PageResponse[TicketRead])
def list_tickets(
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    cursor: str | None = None,
    status: TicketStatus | None = None,
    priority: TicketPriority | None = None,
    channel: TicketChannel | None = None,
    assignee_id: UUID | None = None,
    customer_id: UUID | None = None,
    q: str | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """List visible tickets with cursor pagination + inbox filters."""
    page = ticket_service.visible_tickets(
        db,
        session,
        filters=ticket_service.TicketFilters(
            status=status,
            priority=priority,
            channel=channel,
            assignee_id=assignee_id,
            customer_id=customer_id,
            q=q,
        ),
        limit=limit,
        cursor=cursor,
    )
    return PageResponse(
        data=[TicketRead.model_validate(ticket) for ticket in page.items],
        pagination=Pagination(limit=limit, next_cursor=page.next_cursor),
    )


@router.post(
    "",
    response_model=DataResponse[TicketRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_ticket(
    data: TicketCreateRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    ticket = ticket_service.create_ticket(
        db,
        session,
        customer_id=data.customer_id,
        subject=data.subject,
        channel=data.channel,
        description=data.description,
        priority=data.priority,
        assignee_id=data.assignee_id,
    )
    return DataResponse(data=TicketRead.model_validate(ticket))


@router.get("/{ticket_id}", response_model=DataResponse[TicketRead])
def get_ticket(
    ticket_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    ticket = ticket_service.get_visible_ticket(db, session, ticket_id)
    return DataResponse(data=TicketRead.model_validate(ticket))


@router.patch(
    "/{ticket_id}",
    response_model=DataResponse[TicketRead],
    dependencies=[Depends(require_csrf_header)],
)
def patch_ticket(
    ticket_id: UUID,
    data: TicketPatchRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Update status/priority/subject."""
    ticket = ticket_service.update_ticket(
        db,
        session,
        ticket_id,
        status=data.status,
        priority=data.priority,
        subject=data.subject,
    )
    return DataResponse(data=TicketRead.model_validate(ticket))


@router.post(
    "/{ticket_id}/assign",
    response_model=DataResponse[TicketRead],
    dependencies=[Depends(require_csrf_header)],
)
def assign_ticket(
    ticket_id: UUID,
    data: TicketAssignRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Direct assignment (Owners anywhere, Managers within their subtree)."""
    ticket = ticket_service.assign_ticket(db, session, ticket_id, data.assignee_id)
    return DataResponse(data=TicketRead.model_validate(ticket))


@router.post(
    "/{ticket_id}/escalate",
    response_model=DataResponse[TicketRead],
    dependencies=[Depends(require_csrf_header)],
)
def escalate_ticket(
    ticket_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Agent hands the ticket to their manager."""
    ticket = ticket_service.escalate_ticket(db, session, ticket_id)
    return DataResponse(data=TicketRead.model_validate(ticket))


@router.get("/{ticket_id}/messages", response_model=PageResponse[MessageRead])
def list_ticket_messages(
    ticket_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    ticket = ticket_service.get_visible_ticket(db, session, ticket_id)
    messages = message_service.list_messages(db, ticket)
    return PageResponse(
        data=[MessageRead.model_validate(message) for message in messages],
        pagination=Pagination(limit=len(messages), total=len(messages)),
    )


@router.post(
    "/{ticket_id}/messages",
    response_model=DataResponse[MessageRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def post_ticket_message(
    ticket_id: UUID,
    data: MessageCreateRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Agent reply. Email-channel tickets also email the customer (best effort)."""
    message = message_service.add_agent_message(db, session, ticket_id, data.body)
    return DataResponse(data=MessageRead.model_validate(message))
