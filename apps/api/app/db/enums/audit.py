"""Audit enums."""

from enum import Enum


class AuditEventType(str, Enum):
    """
    Audit events written by mutations.

    Groups:
    - AUTH_*: Authentication events
    - USER_*: Directory changes
    - TICKET_*: Ticket lifecycle and routing
    - AI_*: AI triage outcomes
    """

    # Authentication
    AUTH_SIGNUP = "auth_signup"
    AUTH_LOGIN_SUCCESS = "auth_login_success"
    AUTH_LOGOUT = "auth_logout"

    # Directory
    USER_INVITED = "user_invited"
    USER_INVITE_ACCEPTED = "user_invite_accepted"
    USER_ROLE_CHANGED = "user_role_changed"
    USER_PROFILE_UPDATED = "user_profile_updated"
    USER_DISABLED = "user_disabled"

    # Tickets
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    TICKET_ASSIGNED = "ticket_assigned"
    TICKET_ESCALATED = "ticket_escalated"
    TICKET_AUTO_ASSIGNED = "ticket_auto_assigned"

    # Customers
    CUSTOMER_CREATED = "customer_created"

    # AI
    AI_TRIAGE_RESOLVED = "ai_triage_resolved"
    AI_TRIAGE_ESCALATED = "ai_triage_escalated"
