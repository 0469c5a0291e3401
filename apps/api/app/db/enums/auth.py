"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Roles inside one organization.

    - OWNER: sees and assigns across the whole organization, changes roles
    - MANAGER: sees and assigns within their created-by subtree
    - AGENT: sees only their own work, escalates to their manager
    """

    OWNER = "owner"
    MANAGER = "manager"
    AGENT = "agent"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
