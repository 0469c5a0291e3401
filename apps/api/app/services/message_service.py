"""Ticket conversation messages."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.async_utils import run_async
from app.core.structured_logging import build_log_context
from app.db.enums import MessageSender, TicketChannel, TicketStatus
from app.db.models import Customer, Message, Ticket
from app.schemas.auth import UserSession
from app.services import email_sender, notification_service, ticket_service

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 50_000


def _clean_body(body: str) -> str:
    cleaned = (body or "").strip()
    if not cleaned:
        raise HTTPException(status_code=422, detail="Message body is required")
    if len(cleaned) > MAX_BODY_CHARS:
        raise HTTPException(status_code=422, detail="Message body is too long")
    return cleaned


def message_event_payload(message: Message) -> dict[str, Any]:
    return {
        "id": str(message.id),
        "ticket_id": str(message.ticket_id) if message.ticket_id else None,
        "sender_type": message.sender_type.value,
        "sender_user_id": str(message.sender_user_id) if message.sender_user_id else None,
        "body": message.body,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


def list_messages(db: Session, ticket: Ticket) -> list[Message]:
    """Conversation for a ticket, oldest first."""
    rows = db.execute(
        select(Message)
        .where(
            Message.organization_id == ticket.organization_id,
            Message.ticket_id == ticket.id,
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
    ).scalars()
    return list(rows)


def add_customer_message(
    db: Session,
    *,
    org_id: UUID,
    customer: Customer,
    channel: TicketChannel,
    body: str,
    ticket: Ticket | None = None,
) -> Message:
    """Record a customer-authored message. Flushes, does not commit."""
    message = Message(
        organization_id=org_id,
        ticket_id=ticket.id if ticket else None,
        customer_id=customer.id,
        sender_type=MessageSender.CUSTOMER,
        channel=channel,
        body=_clean_body(body),
    )
    db.add(message)
    db.flush()
    return message


def add_ai_message(
    db: Session,
    *,
    org_id: UUID,
    customer: Customer,
    channel: TicketChannel,
    body: str,
) -> Message:
    """Record an AI answer to a customer (no ticket). Flushes, does not commit."""
    message = Message(
        organization_id=org_id,
        customer_id=customer.id,
        sender_type=MessageSender.AI,
        channel=channel,
        body=_clean_body(body),
    )
    db.add(message)
    db.flush()
    return message


def add_agent_message(
    db: Session,
    session: UserSession,
    ticket_id: UUID,
    body: str,
) -> Message:
    """
    Post an agent reply on a visible ticket.

    The message is committed before any side effects. Email delivery for
    email-channel tickets and realtime fan-out are best effort and never
    undo the message.
    """
    ticket = ticket_service.get_visible_ticket(db, session, ticket_id)
    message = Message(
        organization_id=session.org_id,
        ticket_id=ticket.id,
        customer_id=ticket.customer_id,
        sender_type=MessageSender.AGENT,
        sender_user_id=session.user_id,
        channel=ticket.channel,
        body=_clean_body(body),
    )
    db.add(message)

    now = datetime.now(timezone.utc)
    if ticket.status == TicketStatus.OPEN:
        ticket.status = TicketStatus.IN_PROGRESS
    ticket.updated_at = now
    db.commit()
    db.refresh(message)

    if ticket.channel == TicketChannel.EMAIL:
        _send_email_reply(ticket, message)

    notification_service.emit_to_ticket(
        ticket.id, notification_service.MESSAGE_NEW, message_event_payload(message)
    )
    return message


def _send_email_reply(ticket: Ticket, message: Message) -> bool:
    try:
        return run_async(email_sender.send_reply(ticket, message, ticket.customer))
    except Exception:
        logger.exception(
            "Email reply failed; message kept",
            extra=build_log_context(org_id=ticket.organization_id, ticket_id=ticket.id),
        )
        return False
