"""Service layer modules."""

from app.services.hierarchy_service import (
    HierarchyCycleError,
    manager_of,
    session_subtree,
    subtree_user_ids,
)
from app.services.user_service import (
    bootstrap_organization,
    disable_user,
    get_user_by_email,
    get_user_by_id,
)

__all__ = [
    # Hierarchy
    "HierarchyCycleError",
    "manager_of",
    "session_subtree",
    "subtree_user_ids",
    # User service
    "bootstrap_organization",
    "disable_user",
    "get_user_by_email",
    "get_user_by_id",
]
