"""Invitation endpoints: create, list, revoke, and accept."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    set_session_cookie,
)
from app.core.rate_limit import limiter
from app.db.models import Invite
from app.schemas.auth import UserSession
from app.schemas.common import DataResponse, PageResponse, Pagination
from app.schemas.invite import InviteAccept, InviteCreate, InviteCreated, InviteRead
from app.schemas.user import UserRead
from app.services import invite_service

router = APIRouter(prefix="/invites", tags=["invites"])


def _invite_to_read(invite: Invite) -> InviteRead:
    return InviteRead(
        id=invite.id,
        email=invite.email,
        role=invite.role,
        invited_by_user_id=invite.invited_by_user_id,
        status=invite_service.get_invite_status(invite),
        expires_at=invite.expires_at,
        created_at=invite.created_at,
    )


@router.get("", response_model=PageResponse[InviteRead])
def list_invites(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Invites sent by the actor or anyone in their subtree."""
    invites = invite_service.list_invites(db, session)
    return PageResponse(
        data=[_invite_to_read(invite) for invite in invites],
        pagination=Pagination(limit=100, total=len(invites)),
    )


@router.post(
    "",
    response_model=DataResponse[InviteCreated],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_invite(
    body: InviteCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Invite a Manager or Agent. The new user joins under the inviter."""
    invite = invite_service.create_invite(db, session, body.email, body.role)
    read = _invite_to_read(invite)
    accept_url = f"{settings.FRONTEND_URL.rstrip('/')}/invite/{invite.token}"
    return DataResponse(data=InviteCreated(**read.model_dump(), accept_url=accept_url))


@router.post(
    "/{invite_id}/revoke",
    response_model=DataResponse[InviteRead],
    dependencies=[Depends(require_csrf_header)],
)
def revoke_invite(
    invite_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    invite = invite_service.revoke_invite(db, session, invite_id)
    return DataResponse(data=_invite_to_read(invite))


@router.post("/accept", response_model=DataResponse[UserRead], status_code=201)
@limiter.limit("10/minute")
def accept_invite(
    request: Request,
    response: Response,
    body: InviteAccept,
    db: Session = Depends(get_db),
):
    """Redeem an invite token (public) and start a session for the new user."""
    user = invite_service.accept_invite(db, body.token, body.display_name)
    set_session_cookie(response, user)
    return DataResponse(data=UserRead.model_validate(user))
