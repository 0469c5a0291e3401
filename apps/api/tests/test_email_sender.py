import uuid

import httpx
import pytest

from app.core.config import settings
from app.db.models import Customer, Message, Ticket
from app.services import email_sender


def _objects():
    org_id = uuid.uuid4()
    customer = Customer(id=uuid.uuid4(), organization_id=org_id, email="pat@example.com")
    ticket = Ticket(
        id=uuid.uuid4(),
        organization_id=org_id,
        ticket_number="TKT-00042",
        subject="Broken login",
        customer_id=customer.id,
    )
    message = Message(id=uuid.uuid4(), organization_id=org_id, ticket_id=ticket.id, body="Line one\n<b>two</b>")
    return ticket, message, customer


def test_reply_payload_threads_under_ticket_number():
    ticket, message, customer = _objects()

    payload = email_sender.build_reply_payload(ticket, message, customer)

    assert payload["to"] == ["pat@example.com"]
    assert payload["subject"] == "Re: [TKT-00042] Broken login"
    assert payload["headers"] == {"X-Ticket-Number": "TKT-00042"}
    assert payload["text"] == "Line one\n<b>two</b>"
    assert payload["html"] == "<div>Line one<br>&lt;b&gt;two&lt;/b&gt;</div>"


async def test_send_reply_without_api_key_is_skipped(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")

    assert await email_sender.send_reply(*_objects()) is False


@pytest.mark.parametrize("status_code, expected", [(200, True), (409, True), (422, False)])
async def test_send_reply_reports_provider_outcome(monkeypatch, status_code, expected):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json={"id": "email_1"})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        email_sender.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    ticket, message, customer = _objects()

    assert await email_sender.send_reply(ticket, message, customer) is expected
    assert requests[0].headers["Idempotency-Key"] == f"ticket-message/{message.id}"
    assert requests[0].headers["Authorization"] == "Bearer re_test"


async def test_send_reply_swallows_transport_errors(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        email_sender.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    assert await email_sender.send_reply(*_objects()) is False
