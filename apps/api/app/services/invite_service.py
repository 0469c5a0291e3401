"""Invitation management service.

Accepting an invite is the only way users join an existing organization, and
it is where the created-by edge of the hierarchy is written.
"""

from datetime import datetime, timedelta, timezone
from typing import Literal
import uuid

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.policies import can_invite, can_manage_user
from app.core.security import generate_invite_token
from app.db.enums import AuditEventType, Role
from app.db.models import Invite, User
from app.schemas.auth import UserSession
from app.services import audit_service, hierarchy_service

MAX_PENDING_INVITES_PER_ORG = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_invite_status(invite: Invite) -> Literal["pending", "accepted", "expired", "revoked"]:
    """Derive invite status from fields."""
    if invite.revoked_at:
        return "revoked"
    if invite.accepted_at:
        return "accepted"
    expires_at = _as_aware(invite.expires_at)
    if expires_at and expires_at < _now():
        return "expired"
    return "pending"


def _pending_filter(org_id: uuid.UUID):
    return (
        Invite.organization_id == org_id,
        Invite.accepted_at.is_(None),
        Invite.revoked_at.is_(None),
        or_(Invite.expires_at.is_(None), Invite.expires_at > _now()),
    )


def list_invites(db: Session, session: UserSession) -> list[Invite]:
    """Invites sent by the actor or their subtree (including accepted/revoked for history)."""
    subtree = hierarchy_service.session_subtree(db, session)
    return db.query(Invite).filter(
        Invite.organization_id == session.org_id,
        Invite.invited_by_user_id.in_(list(subtree)),
    ).order_by(Invite.created_at.desc()).limit(100).all()


def count_pending_invites(db: Session, org_id: uuid.UUID) -> int:
    return db.query(func.count(Invite.id)).filter(*_pending_filter(org_id)).scalar() or 0


def create_invite(db: Session, session: UserSession, email: str, role: Role) -> Invite:
    """
    Invite someone into the actor's organization.

    Raises:
        HTTPException 403: Actor may not invite this role
        HTTPException 409: Already a member, or a pending invite exists
        HTTPException 429: Too many pending invites
    """
    if not can_invite(session.role, role):
        raise HTTPException(status_code=403, detail=f"Not allowed to invite a {role.value}")

    email = email.strip().lower()
    if count_pending_invites(db, session.org_id) >= MAX_PENDING_INVITES_PER_ORG:
        raise HTTPException(
            status_code=429,
            detail=f"Maximum of {MAX_PENDING_INVITES_PER_ORG} pending invites reached",
        )

    existing_user = db.query(User).filter(
        User.organization_id == session.org_id,
        User.email == email,
    ).first()
    if existing_user:
        raise HTTPException(status_code=409, detail="User is already a member of this organization")

    existing_invite = db.query(Invite).filter(
        *_pending_filter(session.org_id),
        Invite.email == email,
    ).first()
    if existing_invite:
        raise HTTPException(status_code=409, detail="A pending invite already exists for this email")

    invite = Invite(
        organization_id=session.org_id,
        email=email,
        role=role,
        token=generate_invite_token(),
        invited_by_user_id=session.user_id,
        expires_at=_now() + timedelta(days=settings.INVITE_EXPIRY_DAYS),
    )
    db.add(invite)
    db.flush()

    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.USER_INVITED,
        actor_user_id=session.user_id,
        target_type="invite",
        target_id=invite.id,
        details={"email": audit_service.hash_email(email), "role": role.value},
    )
    db.commit()
    db.refresh(invite)
    return invite


def revoke_invite(db: Session, session: UserSession, invite_id: uuid.UUID) -> Invite:
    """Revoke a pending invite sent by the actor or someone in their subtree."""
    invite = db.query(Invite).filter(
        Invite.id == invite_id,
        Invite.organization_id == session.org_id,
    ).first()
    subtree = hierarchy_service.session_subtree(db, session)
    if not invite or not can_manage_user(session.user_id, subtree, invite.invited_by_user_id):
        raise HTTPException(status_code=404, detail="Invite not found")
    if get_invite_status(invite) != "pending":
        raise HTTPException(status_code=409, detail="Invite is no longer pending")

    invite.revoked_at = _now()
    db.commit()
    db.refresh(invite)
    return invite


def accept_invite(db: Session, token: str, display_name: str) -> User:
    """
    Redeem an invite token into a new user.

    The new user's created_by_id is the inviter, which places them in the
    inviter's subtree.

    Raises:
        HTTPException 404: Unknown, expired, revoked, or already used token
    """
    invite = db.query(Invite).filter(Invite.token == token).first()
    if not invite or get_invite_status(invite) != "pending":
        raise HTTPException(status_code=404, detail="Invite not found or expired")

    inviter = db.query(User).filter(
        User.id == invite.invited_by_user_id,
        User.organization_id == invite.organization_id,
    ).first()
    if not inviter or not inviter.is_active:
        raise HTTPException(status_code=404, detail="Invite not found or expired")

    if db.query(User).filter(
        User.organization_id == invite.organization_id,
        User.email == invite.email,
    ).first():
        raise HTTPException(status_code=409, detail="User is already a member of this organization")

    user = User(
        organization_id=invite.organization_id,
        email=invite.email,
        display_name=display_name.strip() or invite.email.split("@")[0],
        role=invite.role,
        created_by_id=inviter.id,
    )
    db.add(user)
    invite.accepted_at = _now()
    db.flush()

    audit_service.log_event(
        db=db,
        org_id=invite.organization_id,
        event_type=AuditEventType.USER_INVITE_ACCEPTED,
        actor_user_id=user.id,
        target_type="user",
        target_id=user.id,
        details={"invite_id": str(invite.id), "role": invite.role.value},
    )
    db.commit()
    db.refresh(user)
    return user
