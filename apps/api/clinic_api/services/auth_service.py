"""Auth service - credential checks for staff login.

Failures are returned as an AuthFailure kind instead of raised, so routes
branch on the kind rather than on error strings.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from clinic_api.core.security import verify_password
from clinic_api.db.models import User
from clinic_api.db.types import utcnow

logger = logging.getLogger(__name__)


class AuthFailure(str, Enum):
    MISSING_CREDENTIALS = "missing_credentials"
    INVALID_CREDENTIALS = "invalid_credentials"
    INACTIVE_ACCOUNT = "inactive_account"


@dataclass
class AuthResult:
    user: User | None = None
    failure: AuthFailure | None = None

    @property
    def ok(self) -> bool:
        return self.user is not None and self.failure is None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def authenticate_user(db: Session, email: str | None, password: str | None) -> AuthResult:
    """Check email/password. Records last_login_at on success."""
    if not email or not email.strip() or not password:
        return AuthResult(failure=AuthFailure.MISSING_CREDENTIALS)

    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user or not verify_password(password, user.password_hash):
        return AuthResult(failure=AuthFailure.INVALID_CREDENTIALS)

    if not user.is_active:
        return AuthResult(failure=AuthFailure.INACTIVE_ACCOUNT)

    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info("User %s logged in", user.id)
    return AuthResult(user=user)


def revoke_sessions(db: Session, user: User) -> None:
    """Invalidate every session token issued to the user."""
    user.token_version += 1
    db.commit()
