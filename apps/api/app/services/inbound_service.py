"""AI-first handling of customer-originated messages (email + chat widget).

Order of operations:
1. Run the triage gate. Nothing is written yet and no lock is held, so a
   result nobody waits for is simply dropped.
2. Resolved: store the customer message and the AI answer, no ticket.
3. Not resolved: open a ticket on the message's channel, store the message,
   round-robin it to an agent, and notify.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.async_utils import run_async
from app.core.structured_logging import build_log_context
from app.db.enums import AuditEventType, TicketChannel
from app.db.models import Message, Organization, Ticket
from app.services import (
    ai_triage_service,
    audit_service,
    customer_service,
    message_service,
    notification_service,
    ticket_service,
)

logger = logging.getLogger(__name__)

SUBJECT_FALLBACK_CHARS = 120


@dataclass(frozen=True)
class InboundResult:
    """What happened to one inbound customer message."""

    resolved: bool
    response: str | None
    confidence: float
    message: Message
    ticket: Ticket | None = None


def get_organization_by_slug(db: Session, slug: str) -> Organization:
    org = db.execute(
        select(Organization).where(Organization.slug == slug.strip().lower())
    ).scalar_one_or_none()
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


def subject_from_body(body: str) -> str:
    """First non-empty line of a message, shortened for a ticket subject."""
    for line in (body or "").splitlines():
        line = line.strip()
        if line:
            if len(line) > SUBJECT_FALLBACK_CHARS:
                return line[: SUBJECT_FALLBACK_CHARS - 3].rstrip() + "..."
            return line
    return "New conversation"


def handle_inbound_message(
    db: Session,
    *,
    org_id: UUID,
    channel: TicketChannel,
    customer_email: str,
    body: str,
    customer_name: str | None = None,
    subject: str | None = None,
    triage_provider=None,
) -> InboundResult:
    """Answer with AI when confident, otherwise open and route a ticket."""
    log_context = build_log_context(org_id=org_id, channel=channel.value)
    if not (body or "").strip():
        raise HTTPException(status_code=422, detail="Message body is required")

    decision = run_async(
        ai_triage_service.try_resolve(body, org_id, provider=triage_provider)
    )

    customer = customer_service.get_or_create_customer(
        db, org_id, email=customer_email, name=customer_name
    )

    if decision.resolved:
        inbound = message_service.add_customer_message(
            db, org_id=org_id, customer=customer, channel=channel, body=body
        )
        message_service.add_ai_message(
            db, org_id=org_id, customer=customer, channel=channel, body=decision.response or ""
        )
        audit_service.log_event(
            db=db,
            org_id=org_id,
            event_type=AuditEventType.AI_TRIAGE_RESOLVED,
            target_type="customer",
            target_id=customer.id,
            details={"channel": channel.value, "confidence": round(decision.confidence, 3)},
        )
        db.commit()
        db.refresh(inbound)
        logger.info("Inbound message resolved by AI", extra=log_context)
        return InboundResult(
            resolved=True,
            response=decision.response,
            confidence=decision.confidence,
            message=inbound,
        )

    ticket = ticket_service.insert_ticket(
        db,
        org_id=org_id,
        customer=customer,
        subject=(subject or "").strip() or subject_from_body(body),
        channel=channel,
    )
    inbound = message_service.add_customer_message(
        db, org_id=org_id, customer=customer, channel=channel, body=body, ticket=ticket
    )
    audit_service.log_event(
        db=db,
        org_id=org_id,
        event_type=AuditEventType.AI_TRIAGE_ESCALATED,
        target_type="ticket",
        target_id=ticket.id,
        details={"channel": channel.value, "reason": decision.reason},
    )
    audit_service.log_event(
        db=db,
        org_id=org_id,
        event_type=AuditEventType.TICKET_CREATED,
        target_type="ticket",
        target_id=ticket.id,
        details={"channel": channel.value, "source": "inbound"},
    )
    ticket_service.auto_assign_ticket(db, ticket)
    db.commit()
    db.refresh(ticket)
    db.refresh(inbound)

    logger.info(
        f"Inbound message escalated to ticket ({decision.reason})",
        extra=build_log_context(org_id=org_id, ticket_id=ticket.id, channel=channel.value),
    )
    notification_service.emit_to_ticket(
        ticket.id,
        notification_service.TICKET_CREATED,
        ticket_service.ticket_event_payload(ticket),
    )
    return InboundResult(
        resolved=False,
        response=None,
        confidence=decision.confidence,
        message=inbound,
        ticket=ticket,
    )
