"""
WebSocket connection manager for real-time ticket updates.

Clients subscribe to a ticket "room"; server-side events for that ticket
(new message, status/assignee change) are fanned out to every socket in it.
"""

from typing import Dict, Set
from uuid import UUID
import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections per ticket room."""

    def __init__(self):
        # ticket_id -> set of active WebSocket connections
        self._rooms: Dict[UUID, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, ticket_id: UUID):
        """Accept and register a new WebSocket connection for a ticket."""
        await websocket.accept()
        async with self._lock:
            self._rooms.setdefault(ticket_id, set()).add(websocket)

    async def disconnect(self, websocket: WebSocket, ticket_id: UUID):
        """Remove a WebSocket connection."""
        async with self._lock:
            if ticket_id in self._rooms:
                self._rooms[ticket_id].discard(websocket)
                if not self._rooms[ticket_id]:
                    del self._rooms[ticket_id]

    async def send_to_ticket(self, ticket_id: UUID, message: dict) -> int:
        """Send a message to every connection in a ticket room. Returns deliveries."""
        async with self._lock:
            connections = self._rooms.get(ticket_id, set()).copy()

        if not connections:
            return 0

        data = json.dumps(message, default=str)
        closed = []
        delivered = 0

        for ws in connections:
            try:
                await ws.send_text(data)
                delivered += 1
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        if closed:
            async with self._lock:
                if ticket_id in self._rooms:
                    for ws in closed:
                        self._rooms[ticket_id].discard(ws)
                    if not self._rooms[ticket_id]:
                        del self._rooms[ticket_id]
        return delivered

    def get_connected_count(self, ticket_id: UUID) -> int:
        """Get the number of active connections in a ticket room."""
        return len(self._rooms.get(ticket_id, set()))

    def get_total_connections(self) -> int:
        """Get total number of active connections across all rooms."""
        return sum(len(conns) for conns in self._rooms.values())


# Singleton instance
manager = ConnectionManager()
