"""User service - directory reads, profile edits, roles, and org bootstrap."""

from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.policies import can_change_role, can_manage_user
from app.db.enums import AuditEventType, Role
from app.db.models import Organization, User
from app.schemas.auth import UserSession
from app.services import audit_service, hierarchy_service


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, org_id: UUID, email: str) -> User | None:
    """Get user by email within an organization (case-insensitive)."""
    return db.query(User).filter(
        User.organization_id == org_id,
        User.email == email.strip().lower(),
    ).first()


def bootstrap_organization(
    db: Session,
    *,
    name: str,
    slug: str,
    owner_email: str,
    owner_display_name: str,
) -> tuple[Organization, User]:
    """
    Create an organization and its first Owner.

    The first Owner is the root of the created-by forest (created_by_id NULL).

    Raises:
        HTTPException 409: Slug already taken
    """
    if db.query(Organization).filter(Organization.slug == slug.lower()).first():
        raise HTTPException(status_code=409, detail="Organization slug already taken")

    org = Organization(name=name.strip(), slug=slug.lower())
    db.add(org)
    db.flush()

    owner = User(
        organization_id=org.id,
        email=owner_email.strip().lower(),
        display_name=owner_display_name.strip(),
        role=Role.OWNER,
        created_by_id=None,
    )
    db.add(owner)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="Organization slug already taken") from exc

    audit_service.log_event(
        db=db,
        org_id=org.id,
        event_type=AuditEventType.AUTH_SIGNUP,
        actor_user_id=owner.id,
        target_type="organization",
        target_id=org.id,
        details={"email": audit_service.hash_email(owner.email)},
    )
    db.commit()
    db.refresh(org)
    db.refresh(owner)
    return org, owner


def list_users(db: Session, session: UserSession) -> list[User]:
    """Users in the actor's subtree, oldest first."""
    subtree = hierarchy_service.session_subtree(db, session)
    return db.query(User).filter(
        User.organization_id == session.org_id,
        User.id.in_(list(subtree)),
    ).order_by(User.created_at.asc(), User.id.asc()).all()


def get_manageable_user(db: Session, session: UserSession, user_id: UUID) -> User:
    """
    Fetch a user the actor may see and manage.

    Raises:
        HTTPException 404: User missing or outside the actor's subtree
    """
    subtree = hierarchy_service.session_subtree(db, session)
    if not can_manage_user(session.user_id, subtree, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    user = db.query(User).filter(
        User.id == user_id,
        User.organization_id == session.org_id,
    ).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def update_profile(
    db: Session,
    session: UserSession,
    user_id: UUID,
    display_name: str | None = None,
    title: str | None = None,
    avatar_url: str | None = None,
) -> User:
    """Update profile fields on self or a user in the actor's subtree."""
    user = get_manageable_user(db, session, user_id)

    changed: list[str] = []
    if display_name is not None and display_name.strip() and display_name.strip() != user.display_name:
        user.display_name = display_name.strip()
        changed.append("display_name")
    if title is not None and title != user.title:
        user.title = title or None
        changed.append("title")
    if avatar_url is not None and avatar_url != user.avatar_url:
        user.avatar_url = avatar_url or None
        changed.append("avatar_url")

    if not changed:
        return user

    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.USER_PROFILE_UPDATED,
        actor_user_id=session.user_id,
        target_type="user",
        target_id=user.id,
        details={"fields": changed},
    )
    db.commit()
    db.refresh(user)
    return user


def change_role(db: Session, session: UserSession, user_id: UUID, new_role: Role) -> User:
    """
    Change another user's role (Owners only).

    Bumps token_version so the user's existing sessions re-authenticate.

    Raises:
        HTTPException 403: Actor may not change roles, or targets self
        HTTPException 404: User not in organization
    """
    if not can_change_role(session.role):
        raise HTTPException(status_code=403, detail="Only owners can change roles")
    if user_id == session.user_id:
        raise HTTPException(status_code=403, detail="You cannot change your own role")

    user = db.query(User).filter(
        User.id == user_id,
        User.organization_id == session.org_id,
    ).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.role == new_role:
        return user

    old_role = user.role
    user.role = new_role
    user.token_version += 1
    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.USER_ROLE_CHANGED,
        actor_user_id=session.user_id,
        target_type="user",
        target_id=user.id,
        details={"from": old_role.value, "to": new_role.value},
    )
    db.commit()
    db.refresh(user)
    return user


def disable_user(db: Session, session: UserSession, user_id: UUID) -> User:
    """
    Deactivate a user in the actor's subtree (never self).

    Also revokes all sessions by bumping token_version. Deactivated agents
    leave the round-robin rotation.
    """
    if user_id == session.user_id:
        raise HTTPException(status_code=403, detail="You cannot deactivate yourself")
    user = get_manageable_user(db, session, user_id)
    user.is_active = False
    user.token_version += 1
    audit_service.log_event(
        db=db,
        org_id=session.org_id,
        event_type=AuditEventType.USER_DISABLED,
        actor_user_id=session.user_id,
        target_type="user",
        target_id=user.id,
    )
    db.commit()
    db.refresh(user)
    return user
