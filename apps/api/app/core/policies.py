"""Centralized role policies for hierarchy-scoped actions.

Every role decision in the API goes through these functions. They are pure:
callers resolve the actor's subtree once (hierarchy_service) and pass it in,
so nothing here touches storage.
"""

from collections.abc import Collection
from dataclasses import dataclass
from uuid import UUID

from app.db.enums import Role


@dataclass(frozen=True)
class RolePolicy:
    """Static capabilities for a role."""

    assigns_anywhere: bool
    assigns_in_subtree: bool
    escalates: bool
    changes_roles: bool
    views_audit: bool
    invitable_roles: frozenset[Role]


POLICIES: dict[Role, RolePolicy] = {
    Role.OWNER: RolePolicy(
        assigns_anywhere=True,
        assigns_in_subtree=True,
        escalates=False,
        changes_roles=True,
        views_audit=True,
        invitable_roles=frozenset({Role.MANAGER, Role.AGENT}),
    ),
    Role.MANAGER: RolePolicy(
        assigns_anywhere=False,
        assigns_in_subtree=True,
        escalates=False,
        changes_roles=False,
        views_audit=False,
        invitable_roles=frozenset({Role.MANAGER, Role.AGENT}),
    ),
    Role.AGENT: RolePolicy(
        assigns_anywhere=False,
        assigns_in_subtree=False,
        escalates=True,
        changes_roles=False,
        views_audit=False,
        invitable_roles=frozenset(),
    ),
}


def get_policy(role: Role) -> RolePolicy:
    """Fetch a role policy or raise KeyError."""
    return POLICIES[Role(role)]


def can_assign(actor_role: Role, actor_subtree: Collection[UUID], target_user_id: UUID) -> bool:
    """Owners assign to anyone, Managers within their subtree, Agents never."""
    policy = get_policy(actor_role)
    if policy.assigns_anywhere:
        return True
    if policy.assigns_in_subtree:
        return target_user_id in actor_subtree
    return False


def can_escalate(actor_role: Role) -> bool:
    """Escalation is the Agent-to-manager path only."""
    return get_policy(actor_role).escalates


def can_change_role(actor_role: Role) -> bool:
    return get_policy(actor_role).changes_roles


def can_view_audit(actor_role: Role) -> bool:
    return get_policy(actor_role).views_audit


def can_manage_user(actor_id: UUID, actor_subtree: Collection[UUID], target_user_id: UUID) -> bool:
    """Profile edits on non-self targets require the target in the actor's subtree."""
    if actor_id == target_user_id:
        return True
    return target_user_id in actor_subtree


def can_invite(actor_role: Role, invited_role: Role) -> bool:
    return Role(invited_role) in get_policy(actor_role).invitable_roles


def sees_unassigned_tickets(actor_role: Role, *, managers_allowed: bool = False) -> bool:
    """Whether null-assignee tickets join the actor's visible set."""
    role = Role(actor_role)
    if role == Role.OWNER:
        return True
    return role == Role.MANAGER and managers_allowed


def self_assigns_new_tickets(actor_role: Role) -> bool:
    """Roles that cannot assign own every ticket they open."""
    policy = get_policy(actor_role)
    return not (policy.assigns_anywhere or policy.assigns_in_subtree)
