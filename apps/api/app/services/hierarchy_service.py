"""Organizational hierarchy resolution over the created-by relation.

Users form a forest per organization: each user points at the user who
created (invited) them. Visibility and assignment scopes are derived from it:

- OWNER: every user in the organization
- MANAGER: self plus all transitive created-by descendants
- AGENT: self only

The relation lives in rows, not memory, so the walk is breadth-first with one
batched "children of this frontier" query per level and a visited set. A
revisit means the forest invariant is broken; it raises instead of looping.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.enums import Role
from app.db.models import User

logger = logging.getLogger(__name__)

# Upper bound on levels walked; far deeper than any real org chart.
MAX_HIERARCHY_DEPTH = 64


class HierarchyCycleError(RuntimeError):
    """The created-by relation revisited a user (cycle or corrupted data)."""

    def __init__(self, org_id: UUID, user_id: UUID):
        super().__init__(f"Created-by cycle detected at user {user_id}")
        self.org_id = org_id
        self.user_id = user_id


def org_user_ids(db: Session, org_id: UUID) -> set[UUID]:
    """All user IDs in an organization."""
    rows = db.execute(select(User.id).where(User.organization_id == org_id)).scalars()
    return set(rows)


def _children_of(db: Session, org_id: UUID, parent_ids: set[UUID]) -> list[UUID]:
    if not parent_ids:
        return []
    return list(
        db.execute(
            select(User.id).where(
                User.organization_id == org_id,
                User.created_by_id.in_(parent_ids),
            )
        ).scalars()
    )


def descendant_user_ids(db: Session, root_id: UUID, org_id: UUID) -> set[UUID]:
    """Breadth-first walk of created-by edges below root_id (root included)."""
    visited: set[UUID] = {root_id}
    frontier: set[UUID] = {root_id}
    depth = 0

    while frontier:
        depth += 1
        if depth > MAX_HIERARCHY_DEPTH:
            logger.error(
                "Hierarchy depth limit exceeded",
                extra=build_log_context(user_id=root_id, org_id=org_id),
            )
            raise HierarchyCycleError(org_id, root_id)

        next_frontier: set[UUID] = set()
        for child_id in _children_of(db, org_id, frontier):
            if child_id in visited:
                logger.error(
                    "Created-by cycle detected",
                    extra=build_log_context(user_id=child_id, org_id=org_id),
                )
                raise HierarchyCycleError(org_id, child_id)
            visited.add(child_id)
            next_frontier.add(child_id)
        frontier = next_frontier

    return visited


def subtree_user_ids(
    db: Session, actor_id: UUID, actor_role: Role, org_id: UUID
) -> set[UUID]:
    """
    User IDs visible to / assignable by the actor.

    Owners get the whole organization regardless of created-by chains,
    Agents get only themselves, Managers get their transitive subtree.
    """
    role = Role(actor_role)
    if role == Role.OWNER:
        return org_user_ids(db, org_id)
    if role == Role.AGENT:
        return {actor_id}
    return descendant_user_ids(db, actor_id, org_id)


def session_subtree(db: Session, session) -> set[UUID]:
    """Subtree for an authenticated UserSession."""
    return subtree_user_ids(db, session.user_id, session.role, session.org_id)


def manager_of(db: Session, user_id: UUID, org_id: UUID) -> UUID | None:
    """
    The escalation target for a user: whoever created them.

    Returns None for root Owners, unknown users, and creators outside the org.
    """
    created_by_id = db.execute(
        select(User.created_by_id).where(
            User.id == user_id,
            User.organization_id == org_id,
        )
    ).scalar_one_or_none()
    if created_by_id is None:
        return None

    # Guard the same-org invariant rather than trusting the row.
    manager_id = db.execute(
        select(User.id).where(
            User.id == created_by_id,
            User.organization_id == org_id,
        )
    ).scalar_one_or_none()
    return manager_id


def escalation_target(db: Session, user_id: UUID, org_id: UUID) -> UUID | None:
    """
    Nearest active ancestor on the created-by chain above user_id.

    A deactivated manager is skipped in favour of whoever created them, so
    escalated tickets never land on someone who can no longer sign in.
    """
    visited: set[UUID] = {user_id}
    candidate_id = manager_of(db, user_id, org_id)
    while candidate_id is not None:
        if candidate_id in visited:
            logger.error(
                "Created-by cycle detected",
                extra=build_log_context(user_id=candidate_id, org_id=org_id),
            )
            raise HierarchyCycleError(org_id, candidate_id)
        visited.add(candidate_id)

        is_active = db.execute(
            select(User.is_active).where(User.id == candidate_id)
        ).scalar_one()
        if is_active:
            return candidate_id
        candidate_id = manager_of(db, candidate_id, org_id)
    return None
