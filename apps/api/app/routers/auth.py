"""Authentication router: organization signup and session management."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import (
    COOKIE_NAME,
    get_current_session,
    get_db,
    require_csrf_header,
    set_session_cookie,
)
from app.core.rate_limit import limiter
from app.db.enums import AuditEventType
from app.db.models import Organization, User
from app.schemas.auth import MeResponse, SignupRequest, UserSession
from app.schemas.common import DataResponse
from app.services import audit_service, user_service

router = APIRouter()


def _me(user: User, org: Organization) -> MeResponse:
    return MeResponse(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        org_id=org.id,
        org_name=org.name,
        org_slug=org.slug,
        role=user.role,
        manager_id=user.created_by_id,
    )


@router.post("/signup", response_model=DataResponse[MeResponse], status_code=201)
@limiter.limit("5/minute")
def signup(
    request: Request,
    response: Response,
    body: SignupRequest,
    db: Session = Depends(get_db),
):
    """
    Create an organization with its first Owner and start a session.

    The Owner is the root of the organization's created-by hierarchy.
    """
    org, owner = user_service.bootstrap_organization(
        db,
        name=body.organization_name,
        slug=body.organization_slug,
        owner_email=body.email,
        owner_display_name=body.display_name,
    )
    set_session_cookie(response, owner)
    return DataResponse(data=_me(owner, org))


@router.get("/me", response_model=DataResponse[MeResponse])
def get_me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Current user, organization, role, and manager."""
    user = db.query(User).filter(User.id == session.user_id).first()
    org = db.query(Organization).filter(Organization.id == session.org_id).first()
    return DataResponse(data=_me(user, org))


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(
    request: Request,
    response: Response,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Clear session cookie and log logout event.

    Requires X-Requested-With header for CSRF protection.
    """
    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.AUTH_LOGOUT,
        actor_user_id=session.user_id,
        request=request,
    )
    db.commit()

    response.delete_cookie(COOKIE_NAME, path="/")
    return {"data": {"status": "logged_out"}}
