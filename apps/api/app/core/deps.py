"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session, sessionmaker

from app.core.security import decode_session_token
from app.db.enums import Role
from app.db.models import Profile
from app.db.session import SessionLocal
from app.schemas.auth import UserSession


# Cookie and header names
COOKIE_NAME = "portal_session"
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


def get_session_factory() -> sessionmaker:
    """Session factory for work that fans out across threads (one session each)."""
    return SessionLocal


def _profile_from_token(token: str | None, db: Session) -> Profile:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")

    profile = db.get(Profile, _parse_subject(payload.get("sub")))
    if not profile:
        raise HTTPException(status_code=401, detail="User not found")

    if not profile.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if profile.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return profile


def _parse_subject(subject) -> UUID:
    try:
        return UUID(str(subject))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid session")


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Profile:
    """
    Get authenticated profile from the session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - Profile exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    return _profile_from_token(request.cookies.get(COOKIE_NAME), db)


def session_from_profile(profile: Profile) -> UserSession:
    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(profile.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{profile.role}'. Contact administrator.",
        )
    return UserSession(
        user_id=profile.id,
        role=Role(profile.role),
        email=profile.email,
        name=profile.name,
    )


def get_current_session(request: Request, db: Session = Depends(get_db)) -> UserSession:
    """
    Get session context: user_id and role.

    This is the PRIMARY auth dependency for most endpoints. The role is read
    from the profile row, so a demoted staff member loses access at once.
    """
    return session_from_profile(get_current_user(request, db))


def require_roles(allowed_roles):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/x", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """

    def dependency(request: Request, db: Session = Depends(get_db)) -> UserSession:
        session = get_current_session(request, db)
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session

    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def can_review_documents(session: UserSession) -> bool:
    from app.db.enums import ROLES_CAN_REVIEW_DOCUMENTS

    return session.role in ROLES_CAN_REVIEW_DOCUMENTS
