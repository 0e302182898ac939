"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from app.db.enums import Role


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency; the role is re-read
    from the profile row on every request.
    """
    user_id: UUID
    role: Role  # Validated enum
    email: str
    name: str | None = None
