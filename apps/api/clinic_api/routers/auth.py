"""Authentication router: password login and cookie session management."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from clinic_api.core.config import settings
from clinic_api.core.deps import (
    COOKIE_NAME,
    get_current_session,
    get_current_user,
    get_db,
    require_csrf_header,
)
from clinic_api.core.rate_limit import limiter
from clinic_api.core.security import create_session_token
from clinic_api.db.models import Clinic
from clinic_api.schemas.auth import LoginRequest, MeResponse, UserSession
from clinic_api.services import auth_service
from clinic_api.services.auth_service import AuthFailure

router = APIRouter()

# Login failures all map to 401 except malformed input; messages stay
# generic so the response does not reveal which emails exist.
_FAILURE_RESPONSES = {
    AuthFailure.MISSING_CREDENTIALS: (400, "Email and password are required"),
    AuthFailure.INVALID_CREDENTIALS: (401, "Invalid email or password"),
    AuthFailure.INACTIVE_ACCOUNT: (401, "Account disabled"),
}


@router.post("/login", dependencies=[Depends(require_csrf_header)])
@limiter.limit(f"{settings.RATE_LIMIT_AUTH}/minute")
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
):
    """Check credentials and set the session cookie."""
    result = auth_service.authenticate_user(db, body.email, body.password)
    if not result.ok:
        status_code, detail = _FAILURE_RESPONSES[result.failure]
        raise HTTPException(status_code=status_code, detail=detail)

    user = result.user
    token = create_session_token(
        user_id=user.id,
        clinic_id=user.clinic_id,
        role=user.role,
        token_version=user.token_version,
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
    return {"status": "logged_in", "user_id": str(user.id)}


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.post("/logout-all", dependencies=[Depends(require_csrf_header)])
def logout_all(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Revoke every session of the current user (bumps token_version)."""
    user = get_current_user(request, db)
    auth_service.revoke_sessions(db, user)
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.get("/me", response_model=MeResponse)
def me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    clinic = db.query(Clinic).filter(Clinic.id == session.clinic_id).first()
    if not clinic:
        raise HTTPException(status_code=404, detail="Clinic not found")
    return MeResponse(
        user_id=session.user_id,
        email=session.email,
        display_name=session.display_name,
        clinic_id=clinic.id,
        clinic_name=clinic.name,
        clinic_timezone=clinic.timezone,
        role=session.role,
    )
