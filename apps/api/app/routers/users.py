"""Directory endpoints scoped to the actor's hierarchy subtree."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.common import DataResponse, PageResponse, Pagination
from app.schemas.user import UserProfileUpdate, UserRead, UserRoleUpdate
from app.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=PageResponse[UserRead])
def list_users(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Owners see everyone, Managers their subtree, Agents themselves."""
    users = user_service.list_users(db, session)
    return PageResponse(
        data=[UserRead.model_validate(user) for user in users],
        pagination=Pagination(limit=len(users), total=len(users)),
    )


@router.get("/{user_id}", response_model=DataResponse[UserRead])
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    user = user_service.get_manageable_user(db, session, user_id)
    return DataResponse(data=UserRead.model_validate(user))


@router.patch(
    "/{user_id}",
    response_model=DataResponse[UserRead],
    dependencies=[Depends(require_csrf_header)],
)
def update_user_profile(
    user_id: UUID,
    body: UserProfileUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Edit self, or anyone in the actor's subtree."""
    user = user_service.update_profile(
        db,
        session,
        user_id,
        display_name=body.display_name,
        title=body.title,
        avatar_url=body.avatar_url,
    )
    return DataResponse(data=UserRead.model_validate(user))


@router.patch(
    "/{user_id}/role",
    response_model=DataResponse[UserRead],
    dependencies=[Depends(require_csrf_header)],
)
def change_user_role(
    user_id: UUID,
    body: UserRoleUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Owners only."""
    user = user_service.change_role(db, session, user_id, body.role)
    return DataResponse(data=UserRead.model_validate(user))


@router.post(
    "/{user_id}/deactivate",
    response_model=DataResponse[UserRead],
    dependencies=[Depends(require_csrf_header)],
)
def deactivate_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    user = user_service.disable_user(db, session, user_id)
    return DataResponse(data=UserRead.model_validate(user))
