"""Per-clinic integration settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_api.db.base import Base
from clinic_api.db.types import utcnow

if TYPE_CHECKING:
    from clinic_api.db.models import Clinic


class ClinicSettings(Base):
    """
    Omnichannel configuration for a clinic (one row per clinic).

    Written through an insert-or-update on clinic_id, never read-then-write.
    """

    __tablename__ = "clinic_settings"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    whatsapp_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    whatsapp_phone_number_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    instagram_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    clinic: Mapped["Clinic"] = relationship(back_populates="settings")
