"""Outbound email for agent replies on email-channel tickets (Resend API).

Sending is best effort: callers have already committed the message, so every
failure here is logged and reported as False, never raised.
"""

from __future__ import annotations

import html
import logging

import httpx

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.models import Customer, Message, Ticket

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0


def build_reply_payload(ticket: Ticket, message: Message, customer: Customer) -> dict[str, object]:
    """Resend payload threading the reply under the ticket number."""
    subject = f"Re: [{ticket.ticket_number}] {ticket.subject}"
    body_html = "<br>".join(html.escape(line) for line in message.body.splitlines())
    return {
        "from": settings.EMAIL_FROM,
        "to": [customer.email],
        "subject": subject,
        "text": message.body,
        "html": f"<div>{body_html}</div>",
        "headers": {"X-Ticket-Number": ticket.ticket_number},
    }


async def send_reply(ticket: Ticket, message: Message, customer: Customer) -> bool:
    """Send an agent message to the customer. Returns True when accepted by the provider."""
    log_context = build_log_context(org_id=ticket.organization_id, ticket_id=ticket.id)
    if not settings.RESEND_API_KEY:
        logger.info("Outbound email not configured; reply not sent", extra=log_context)
        return False
    if not customer.email:
        logger.warning("Customer has no email address; reply not sent", extra=log_context)
        return False

    headers = {
        "Authorization": f"Bearer {settings.RESEND_API_KEY}",
        "Content-Type": "application/json",
        # Message ID is stable across retries of the same reply.
        "Idempotency-Key": f"ticket-message/{message.id}",
    }

    try:
        async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS) as client:
            response = await client.post(
                RESEND_SEND_URL,
                headers=headers,
                json=build_reply_payload(ticket, message, customer),
            )
    except httpx.TimeoutException:
        logger.warning("Resend timeout sending ticket reply", extra=log_context)
        return False
    except httpx.HTTPError as exc:
        logger.warning(
            f"Resend connection error: {exc.__class__.__name__}", extra=log_context
        )
        return False

    # 409 = idempotency conflict, already sent
    if 200 <= response.status_code < 300 or response.status_code == 409:
        logger.info("Ticket reply emailed", extra=log_context)
        return True

    logger.warning(f"Resend API error: {response.status_code}", extra=log_context)
    return False
