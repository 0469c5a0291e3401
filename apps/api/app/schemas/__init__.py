"""Pydantic schemas for API request/response models."""

from app.schemas.auth import MeResponse, SignupRequest, TokenPayload, UserSession
from app.schemas.common import DataResponse, ErrorResponse, PageResponse, Pagination
from app.schemas.customer import CustomerCreateRequest, CustomerRead
from app.schemas.invite import InviteAccept, InviteCreate, InviteCreated, InviteRead
from app.schemas.ticketing import (
    MessageCreateRequest,
    MessageRead,
    TicketAssignRequest,
    TicketCreateRequest,
    TicketPatchRequest,
    TicketRead,
)
from app.schemas.user import UserProfileUpdate, UserRead, UserRoleUpdate

__all__ = [
    # Auth
    "TokenPayload",
    "UserSession",
    "MeResponse",
    "SignupRequest",
    # Envelopes
    "DataResponse",
    "PageResponse",
    "Pagination",
    "ErrorResponse",
    # User
    "UserRead",
    "UserProfileUpdate",
    "UserRoleUpdate",
    # Invite
    "InviteCreate",
    "InviteCreated",
    "InviteRead",
    "InviteAccept",
    # Customer
    "CustomerCreateRequest",
    "CustomerRead",
    # Ticket
    "TicketCreateRequest",
    "TicketPatchRequest",
    "TicketAssignRequest",
    "TicketRead",
    "MessageCreateRequest",
    "MessageRead",
]
