"""Development-only endpoints for testing and seeding."""

from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db, set_session_cookie
from app.db.enums import AuditEventType, Role
from app.db.models import Organization, User
from app.services import audit_service, user_service

router = APIRouter()


def _verify_dev_secret(x_dev_secret: str = Header(...)):
    """
    Verify dev secret header.

    Provides an extra layer of protection for dev endpoints
    beyond just the ENV check.
    """
    if not settings.DEV_SECRET or x_dev_secret != settings.DEV_SECRET:
        raise HTTPException(status_code=403, detail="Invalid dev secret")


@router.post("/seed", dependencies=[Depends(_verify_dev_secret)])
def seed_test_data(db: Session = Depends(get_db)):
    """
    Create a demo organization with a two-manager hierarchy.

    Owner -> Manager A -> Agents 1, 2 and Owner -> Manager B -> Agent 3.
    Idempotent - returns existing data if already seeded.
    """
    existing = db.query(Organization).filter(Organization.slug == "demo").first()
    if existing:
        return {"data": {"status": "already_seeded", "org_id": str(existing.id)}}

    org, owner = user_service.bootstrap_organization(
        db,
        name="Demo Support",
        slug="demo",
        owner_email="owner@demo.test",
        owner_display_name="Demo Owner",
    )

    def _add(email: str, name: str, role: Role, creator: User) -> User:
        user = User(
            organization_id=org.id,
            email=email,
            display_name=name,
            role=role,
            created_by_id=creator.id,
        )
        db.add(user)
        db.flush()
        return user

    manager_a = _add("manager.a@demo.test", "Manager A", Role.MANAGER, owner)
    manager_b = _add("manager.b@demo.test", "Manager B", Role.MANAGER, owner)
    agents = [
        _add("agent.1@demo.test", "Agent 1", Role.AGENT, manager_a),
        _add("agent.2@demo.test", "Agent 2", Role.AGENT, manager_a),
        _add("agent.3@demo.test", "Agent 3", Role.AGENT, manager_b),
    ]
    db.commit()

    return {
        "data": {
            "status": "seeded",
            "org_id": str(org.id),
            "org_slug": org.slug,
            "users": [
                {"email": user.email, "user_id": str(user.id), "role": user.role.value}
                for user in [owner, manager_a, manager_b, *agents]
            ],
        }
    }


@router.post("/login/{user_id}", dependencies=[Depends(_verify_dev_secret)])
def login_as(
    user_id: UUID,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Directly set a session cookie for a user.

    Requires X-Dev-Secret header matching DEV_SECRET env var.
    Useful for testing role-based access without a real identity provider.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=400, detail="User is disabled")

    set_session_cookie(response, user)
    audit_service.log_event(
        db=db,
        org_id=user.organization_id,
        event_type=AuditEventType.AUTH_LOGIN_SUCCESS,
        actor_user_id=user.id,
        details={"method": "dev_login"},
        request=request,
    )
    db.commit()

    return {
        "data": {
            "status": "logged_in",
            "user_id": str(user.id),
            "role": user.role.value,
        }
    }
