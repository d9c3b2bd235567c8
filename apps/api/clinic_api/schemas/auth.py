"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

from clinic_api.db.enums import Role


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    Returned by the get_current_session dependency. clinic_id is the only
    tenant scope a request may use.
    """
    user_id: UUID
    clinic_id: UUID
    role: Role  # Validated enum
    email: str
    display_name: str


class LoginRequest(BaseModel):
    email: str = Field("", max_length=255)
    password: str = Field("", max_length=128)


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    display_name: str
    clinic_id: UUID
    clinic_name: str
    clinic_timezone: str
    role: Role
