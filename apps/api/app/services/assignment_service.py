"""Round-robin assignment of escalated tickets to agents.

The rotation cursor is the only shared mutable state in request handling:
concurrent allocations for the same organization must never read the same
pre-increment value. Every backend therefore exposes a single atomic
`next_index(org_id)`; nothing does a read-then-write on a shared cell.

Backends:
- InMemoryRotationCursor: mutex-guarded dict, single process
- RedisRotationCursor: INCR, shared by every API process
- DatabaseRotationCursor: atomic upsert on org_counters, same transaction as the ticket
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.redis_client import get_sync_redis_client
from app.core.structured_logging import build_log_context
from app.db.enums import Role
from app.db.models import User
from app.services import counter_service

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "wrrk:rotation:"


class RotationCursor(Protocol):
    """Per-organization atomic counter. Returns the pre-increment value, from 0."""

    def next_index(self, org_id: UUID) -> int: ...


class InMemoryRotationCursor:
    """Process-local cursor; correct for a single API process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cursors: dict[UUID, int] = {}

    def next_index(self, org_id: UUID) -> int:
        with self._lock:
            value = self._cursors.get(org_id, 0)
            self._cursors[org_id] = value + 1
            return value

    def reset(self, org_id: UUID | None = None) -> None:
        with self._lock:
            if org_id is None:
                self._cursors.clear()
            else:
                self._cursors.pop(org_id, None)


class RedisRotationCursor:
    """Cursor shared across processes through Redis INCR."""

    def __init__(self, client) -> None:
        self._client = client

    def next_index(self, org_id: UUID) -> int:
        # INCR returns the post-increment value and creates the key at 0.
        return int(self._client.incr(f"{REDIS_KEY_PREFIX}{org_id}")) - 1


class DatabaseRotationCursor:
    """Cursor stored in org_counters; increments inside the caller's transaction."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def next_index(self, org_id: UUID) -> int:
        return counter_service.increment(self._db, org_id, counter_service.ROTATION_COUNTER) - 1


_local_cursor = InMemoryRotationCursor()


def get_rotation_cursor() -> RotationCursor:
    """Redis-backed cursor when REDIS_URL is configured, process-local otherwise."""
    client = get_sync_redis_client()
    if client is not None:
        return RedisRotationCursor(client)
    return _local_cursor


def list_rotation_agents(db: Session, org_id: UUID) -> list[UUID]:
    """Active agents in stable creation order (ties broken by id)."""
    rows = db.execute(
        select(User.id)
        .where(
            User.organization_id == org_id,
            User.role == Role.AGENT,
            User.is_active.is_(True),
        )
        .order_by(User.created_at.asc(), User.id.asc())
    ).scalars()
    return list(rows)


def next_agent(
    db: Session,
    org_id: UUID,
    cursor: RotationCursor | None = None,
) -> UUID | None:
    """
    Pick the next agent in rotation, or None when the org has no agents.

    An empty roster leaves the cursor untouched; the ticket simply stays
    unassigned until someone assigns it manually. The index is taken modulo
    the roster size read for this call, so roster changes between calls
    never index out of bounds.
    """
    agents = list_rotation_agents(db, org_id)
    if not agents:
        logger.info(
            "Round-robin skipped: no agents",
            extra=build_log_context(org_id=org_id),
        )
        return None

    rotation = cursor or get_rotation_cursor()
    index = rotation.next_index(org_id)
    return agents[index % len(agents)]
