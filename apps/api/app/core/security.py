"""Session JWTs, invite tokens and shared-secret checks."""

import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from app.core.config import settings
from app.db.enums import Role

SESSION_ALGORITHM = "HS256"
SESSION_TOKEN_TYPE = "session"
REQUIRED_SESSION_CLAIMS = ["sub", "org_id", "role", "token_version", "exp"]


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(
    user_id: UUID,
    org_id: UUID,
    role: Role | str,
    token_version: int,
) -> str:
    """
    Sign a session for one user in one organization.

    The role is embedded for the client's convenience only; every request
    re-reads the user row, so `token_version` is what makes revocation stick.
    """
    issued_at = datetime.now(timezone.utc)
    claims = {
        "typ": SESSION_TOKEN_TYPE,
        "sub": str(user_id),
        "org_id": str(org_id),
        "role": Role(role).value,
        "token_version": token_version,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=SESSION_ALGORITHM)


def decode_session_token(token: str) -> dict:
    """
    Verify a session JWT against the current secret, then the previous one.

    Raises:
        jwt.InvalidTokenError: bad signature under every secret, expired,
            missing claims, or not a session token
    """
    error: jwt.InvalidTokenError = jwt.InvalidSignatureError("No signing secret configured")
    for secret in settings.jwt_secrets:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[SESSION_ALGORITHM],
                options={"require": REQUIRED_SESSION_CLAIMS},
            )
        except jwt.InvalidSignatureError as exc:
            error = exc
            continue
        if claims.get("typ") != SESSION_TOKEN_TYPE:
            raise jwt.InvalidTokenError("Not a session token")
        return claims
    raise error


# =============================================================================
# Invites and shared secrets
# =============================================================================

def generate_invite_token() -> str:
    """Random URL-safe invite token (32 bytes of entropy)."""
    return secrets.token_urlsafe(32)


def constant_time_equals(left: str, right: str) -> bool:
    return secrets.compare_digest(left.encode(), right.encode())
