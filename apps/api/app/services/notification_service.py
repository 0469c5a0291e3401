"""Real-time ticket event fan-out.

`emit_to_ticket` is fire-and-forget: no acknowledgement, and a failure never
propagates into the mutation that triggered it. With Redis configured the
event goes through pub/sub so every API process can deliver it to its own
sockets; otherwise it is delivered to this process's connections directly.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from app.core.async_utils import run_async
from app.core.redis_client import get_async_redis_client, get_sync_redis_client
from app.core.structured_logging import build_log_context
from app.core.websocket import manager

logger = logging.getLogger(__name__)

TICKET_EVENTS_CHANNEL = "wrrk:ticket-events"

# Event names
MESSAGE_NEW = "message:new"
TICKET_CREATED = "ticket:created"
TICKET_UPDATED = "ticket:updated"
TICKET_ASSIGNED = "ticket:assigned"


def build_event(ticket_id: UUID, event_name: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": event_name,
        "ticket_id": str(ticket_id),
        "payload": payload,
        "sent_at": datetime.now(timezone.utc).isoformat(),
    }


def emit_to_ticket(ticket_id: UUID, event_name: str, payload: dict[str, Any]) -> None:
    """Publish an event to subscribers of a ticket. Never raises."""
    event = build_event(ticket_id, event_name, payload)
    try:
        client = get_sync_redis_client()
        if client is not None:
            client.publish(TICKET_EVENTS_CHANNEL, json.dumps(event, default=str))
            return
        run_async(manager.send_to_ticket(ticket_id, event))
    except Exception as exc:
        logger.warning(
            f"Ticket event '{event_name}' not delivered: {exc.__class__.__name__}",
            extra=build_log_context(ticket_id=ticket_id),
        )


async def _deliver(raw: bytes | str) -> None:
    try:
        event = json.loads(raw)
        ticket_id = UUID(event["ticket_id"])
    except (ValueError, KeyError, TypeError):
        logger.warning("Discarding malformed ticket event from backplane")
        return
    await manager.send_to_ticket(ticket_id, event)


async def run_backplane_listener(stop: asyncio.Event) -> None:
    """Forward Redis ticket events to local websocket rooms until stopped."""
    client = get_async_redis_client()
    if client is None:
        return

    pubsub = client.pubsub()
    await pubsub.subscribe(TICKET_EVENTS_CHANNEL)
    logger.info("Ticket event backplane listener started")
    try:
        while not stop.is_set():
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message.get("type") == "message":
                await _deliver(message["data"])
    finally:
        await pubsub.unsubscribe(TICKET_EVENTS_CHANNEL)
        await pubsub.close()
