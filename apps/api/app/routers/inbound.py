"""Customer-originated messages: inbound email webhook and public chat widget."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.rate_limit import WIDGET_LIMIT, limiter
from app.core.security import constant_time_equals
from app.db.enums import TicketChannel
from app.schemas.common import DataResponse
from app.schemas.inbound import InboundEmailRequest, InboundResponse, WidgetMessageRequest
from app.services import inbound_service
from app.services.inbound_service import InboundResult

router = APIRouter(tags=["Inbound"])


def _verify_inbound_secret(x_inbound_secret: str | None = Header(None)) -> None:
    if not settings.INBOUND_EMAIL_SECRET:
        raise HTTPException(status_code=503, detail="Inbound email is not configured")
    if not x_inbound_secret or not constant_time_equals(
        x_inbound_secret, settings.INBOUND_EMAIL_SECRET
    ):
        raise HTTPException(status_code=401, detail="Invalid inbound secret")


def _to_response(result: InboundResult) -> InboundResponse:
    return InboundResponse(
        resolved=result.resolved,
        response=result.response,
        ticket_id=result.ticket.id if result.ticket else None,
        ticket_number=result.ticket.ticket_number if result.ticket else None,
    )


@router.post(
    "/inbound/email",
    response_model=DataResponse[InboundResponse],
    dependencies=[Depends(_verify_inbound_secret)],
)
def inbound_email(body: InboundEmailRequest, db: Session = Depends(get_db)):
    """
    Webhook for parsed inbound email.

    AI answers first; a ticket is opened only when it cannot.
    """
    org = inbound_service.get_organization_by_slug(db, body.organization_slug)
    result = inbound_service.handle_inbound_message(
        db,
        org_id=org.id,
        channel=TicketChannel.EMAIL,
        customer_email=body.from_email,
        customer_name=body.from_name,
        subject=body.subject,
        body=body.text,
    )
    return DataResponse(data=_to_response(result))


@router.post("/widget/{org_slug}/messages", response_model=DataResponse[InboundResponse])
@limiter.limit(WIDGET_LIMIT)
def widget_message(
    request: Request,
    org_slug: str,
    body: WidgetMessageRequest,
    db: Session = Depends(get_db),
):
    """Public chat widget endpoint (unauthenticated, rate limited)."""
    org = inbound_service.get_organization_by_slug(db, org_slug)
    result = inbound_service.handle_inbound_message(
        db,
        org_id=org.id,
        channel=TicketChannel.CHAT,
        customer_email=body.email,
        customer_name=body.name,
        body=body.message,
    )
    return DataResponse(data=_to_response(result))
