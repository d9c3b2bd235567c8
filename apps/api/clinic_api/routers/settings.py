"""Clinic settings router - omnichannel channel configuration."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clinic_api.core.deps import get_current_session, get_db, require_csrf_header, require_roles
from clinic_api.db.enums import Role
from clinic_api.schemas.auth import UserSession
from clinic_api.schemas.settings import OmnichannelSettingsRead, OmnichannelSettingsUpdate
from clinic_api.services import clinic_settings_service

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/omnichannel", response_model=OmnichannelSettingsRead)
def get_omnichannel_settings(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Channel configuration for the current clinic (tokens masked)."""
    settings_row = clinic_settings_service.get_settings(db, session.clinic_id)
    return clinic_settings_service.to_read(session.clinic_id, settings_row)


@router.put(
    "/omnichannel",
    response_model=OmnichannelSettingsRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_omnichannel_settings(
    data: OmnichannelSettingsUpdate,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Create or update channel configuration (admin only)."""
    settings_row = clinic_settings_service.upsert_omnichannel_settings(
        db, session.clinic_id, data
    )
    return clinic_settings_service.to_read(session.clinic_id, settings_row)
