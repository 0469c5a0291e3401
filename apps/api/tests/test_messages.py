"""Ticket conversation messages and best-effort side effects."""

import pytest
from fastapi import HTTPException

from app.db.enums import MessageSender, TicketChannel, TicketStatus
from app.services import email_sender, message_service, notification_service


@pytest.fixture
def customer(factory, hierarchy):
    return factory.customer(hierarchy.org, email="pat@example.com")


def test_first_agent_reply_moves_open_ticket_in_progress(db, session_for, factory, hierarchy, customer):
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1)

    message = message_service.add_agent_message(db, session_for(hierarchy.a1), ticket.id, "On it!")

    db.refresh(ticket)
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert message.sender_type == MessageSender.AGENT
    assert message.sender_user_id == hierarchy.a1.id
    assert message.channel == TicketChannel.PORTAL


def test_reply_keeps_non_open_status(db, session_for, factory, hierarchy, customer):
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1, status=TicketStatus.WAITING)

    message_service.add_agent_message(db, session_for(hierarchy.a1), ticket.id, "Any update?")

    db.refresh(ticket)
    assert ticket.status == TicketStatus.WAITING


def test_reply_on_invisible_ticket_is_not_found(db, session_for, factory, hierarchy, customer):
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a2)

    with pytest.raises(HTTPException) as exc_info:
        message_service.add_agent_message(db, session_for(hierarchy.a1), ticket.id, "Hi")
    assert exc_info.value.status_code == 404


def test_blank_reply_is_rejected(db, session_for, factory, hierarchy, customer):
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1)

    with pytest.raises(HTTPException) as exc_info:
        message_service.add_agent_message(db, session_for(hierarchy.a1), ticket.id, "  \n ")
    assert exc_info.value.status_code == 422


def test_email_failure_does_not_undo_the_message(db, session_for, factory, hierarchy, customer, monkeypatch):
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1, channel=TicketChannel.EMAIL)

    async def _boom(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(email_sender, "send_reply", _boom)

    message = message_service.add_agent_message(db, session_for(hierarchy.a1), ticket.id, "Refund issued.")

    stored = message_service.list_messages(db, ticket)
    assert [m.id for m in stored] == [message.id]


def test_email_reply_sent_only_for_email_tickets(db, session_for, factory, hierarchy, customer, monkeypatch):
    sent = []

    async def _record(ticket, message, customer):
        sent.append((ticket.ticket_number, message.body, customer.email))
        return True

    monkeypatch.setattr(email_sender, "send_reply", _record)
    email_ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1, channel=TicketChannel.EMAIL)
    chat_ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1, channel=TicketChannel.CHAT)

    message_service.add_agent_message(db, session_for(hierarchy.a1), email_ticket.id, "Via email")
    message_service.add_agent_message(db, session_for(hierarchy.a1), chat_ticket.id, "Via chat")

    assert sent == [(email_ticket.ticket_number, "Via email", "pat@example.com")]


def test_reply_emits_realtime_event(db, session_for, factory, hierarchy, customer, monkeypatch):
    events = []
    monkeypatch.setattr(
        notification_service,
        "emit_to_ticket",
        lambda ticket_id, event_name, payload: events.append((ticket_id, event_name, payload)),
    )
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1)

    message = message_service.add_agent_message(db, session_for(hierarchy.a1), ticket.id, "Hello")

    assert events == [
        (ticket.id, notification_service.MESSAGE_NEW, message_service.message_event_payload(message))
    ]


def test_list_messages_is_chronological(db, session_for, factory, hierarchy, customer):
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1)
    session = session_for(hierarchy.a1)

    first = message_service.add_agent_message(db, session, ticket.id, "first")
    second = message_service.add_agent_message(db, session, ticket.id, "second")

    assert [m.id for m in message_service.list_messages(db, ticket)] == [first.id, second.id]
