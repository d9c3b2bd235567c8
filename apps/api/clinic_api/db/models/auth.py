"""SQLAlchemy ORM models for tenants and staff accounts."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_api.db.base import Base
from clinic_api.db.enums import DEFAULT_ROLE
from clinic_api.db.types import utcnow

if TYPE_CHECKING:
    from clinic_api.db.models import ClinicSettings


class Clinic(Base):
    """
    A dental clinic (tenant).

    All domain entities belong to a clinic
    and must be scoped by clinic_id in all queries.
    """

    __tablename__ = "clinics"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(50), default="America/Sao_Paulo", server_default=text("'America/Sao_Paulo'")
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    users: Mapped[list["User"]] = relationship(back_populates="clinic")
    settings: Mapped["ClinicSettings"] = relationship(back_populates="clinic", uselist=False)


class User(Base):
    """
    Clinic staff account.

    Authenticated with email + password; sessions are revoked by bumping
    token_version.
    """

    __tablename__ = "users"
    __table_args__ = (Index("idx_users_clinic", "clinic_id"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(30), default=DEFAULT_ROLE.value, nullable=False)
    token_version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    clinic: Mapped["Clinic"] = relationship(back_populates="users")
