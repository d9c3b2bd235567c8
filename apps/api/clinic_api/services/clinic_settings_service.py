"""Clinic settings service - omnichannel channel configuration."""

from uuid import UUID

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from clinic_api.db.models import ClinicSettings
from clinic_api.db.types import utcnow
from clinic_api.schemas.settings import OmnichannelSettingsRead, OmnichannelSettingsUpdate


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")


def get_settings(db: Session, clinic_id: UUID) -> ClinicSettings | None:
    return db.query(ClinicSettings).filter(ClinicSettings.clinic_id == clinic_id).first()


def upsert_omnichannel_settings(
    db: Session, clinic_id: UUID, data: OmnichannelSettingsUpdate
) -> ClinicSettings:
    """
    Insert or update the clinic's channel settings in one statement.

    Only fields present in the payload are written on update.
    """
    now = utcnow()
    values = data.model_dump(exclude_unset=True)

    insert = _insert_for(db)
    stmt = insert(ClinicSettings).values(
        clinic_id=clinic_id,
        created_at=now,
        updated_at=now,
        **values,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[ClinicSettings.clinic_id],
        set_={**values, "updated_at": now},
    )
    db.execute(stmt)
    db.commit()

    settings_row = get_settings(db, clinic_id)
    db.refresh(settings_row)
    return settings_row


def _hint(secret: str | None) -> str | None:
    if not secret:
        return None
    return f"...{secret[-4:]}" if len(secret) > 8 else "****"


def to_read(clinic_id: UUID, settings_row: ClinicSettings | None) -> OmnichannelSettingsRead:
    """Response with tokens masked."""
    if settings_row is None:
        return OmnichannelSettingsRead(
            clinic_id=clinic_id,
            whatsapp_configured=False,
            whatsapp_phone_number_id=None,
            whatsapp_token_hint=None,
            instagram_configured=False,
            instagram_token_hint=None,
            updated_at=None,
        )
    return OmnichannelSettingsRead(
        clinic_id=clinic_id,
        whatsapp_configured=bool(
            settings_row.whatsapp_token and settings_row.whatsapp_phone_number_id
        ),
        whatsapp_phone_number_id=settings_row.whatsapp_phone_number_id,
        whatsapp_token_hint=_hint(settings_row.whatsapp_token),
        instagram_configured=bool(settings_row.instagram_access_token),
        instagram_token_hint=_hint(settings_row.instagram_access_token),
        updated_at=settings_row.updated_at,
    )
