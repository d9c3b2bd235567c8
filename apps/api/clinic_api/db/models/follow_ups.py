"""SQLAlchemy ORM models for follow-up rules and their executions."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_api.db.base import Base
from clinic_api.db.enums import DEFAULT_EXECUTION_STATUS
from clinic_api.db.types import utcnow


class FollowUp(Base):
    """
    Follow-up rule configured by clinic staff.

    When `trigger` fires for a contact of `target_type`, one execution is
    scheduled `delay_days` after the reference date with the rendered
    `message_template`. Deleting a rule only deactivates it.
    """

    __tablename__ = "follow_ups"
    __table_args__ = (
        Index("idx_follow_ups_clinic_trigger", "clinic_id", "trigger", "target_type"),
        CheckConstraint("delay_days BETWEEN -365 AND 365", name="ck_follow_ups_delay_days"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trigger: Mapped[str] = mapped_column(String(50), nullable=False)
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)
    delay_days: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    message_template: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    executions: Mapped[list["FollowUpExecution"]] = relationship(back_populates="follow_up")


class FollowUpExecution(Base):
    """
    One scheduled follow-up attempt for one contact.

    scheduled_for never changes after insert. Status only moves forward
    (pending -> claimed -> sent/failed, or pending -> cancelled) through
    conditional updates in the execution store. Rows are kept as audit trail.
    """

    __tablename__ = "follow_up_executions"
    __table_args__ = (
        Index(
            "idx_follow_up_executions_due",
            "status",
            "scheduled_for",
            postgresql_where=text("status = 'pending'"),
        ),
        Index("idx_follow_up_executions_clinic", "clinic_id", "scheduled_for"),
        Index("idx_follow_up_executions_target", "clinic_id", "target_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    follow_up_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("follow_ups.id", ondelete="RESTRICT"), nullable=False
    )
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_EXECUTION_STATUS.value, nullable=False
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    follow_up: Mapped["FollowUp"] = relationship(back_populates="executions")
