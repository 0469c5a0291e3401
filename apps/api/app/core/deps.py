"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.security import decode_session_token
from app.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "wrrk_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _session_token(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get authenticated user from session cookie (or bearer token).

    Validates:
    - Session token exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    # Import here to avoid circular imports
    from app.db.models import User

    token = _session_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return user


def get_current_session(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get full session context: user_id, org_id, role.

    This is the PRIMARY auth dependency for most endpoints.
    Role and organization are read from the user row, not the token, so a
    role change takes effect on the next request.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    from app.db.enums import Role
    from app.schemas.auth import UserSession

    user = get_current_user(request, db)

    role_value = user.role.value if hasattr(user.role, "value") else str(user.role)
    if not Role.has_value(role_value):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{role_value}'. Contact administrator."
        )

    return UserSession(
        user_id=user.id,
        org_id=user.organization_id,
        role=Role(role_value),
        email=user.email,
        display_name=user.display_name,
    )


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on cookie-authenticated mutations.

    Bearer-token clients are not exposed to CSRF and skip the check.

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if not request.cookies.get(COOKIE_NAME):
        return
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )


def set_session_cookie(response, user) -> None:
    """Issue a session for a user and attach it as an httpOnly cookie."""
    from app.core.config import settings
    from app.core.security import create_session_token

    token = create_session_token(
        user.id,
        user.organization_id,
        user.role.value,
        user.token_version,
    )
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
