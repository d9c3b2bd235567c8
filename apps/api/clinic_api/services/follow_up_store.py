"""Execution store - persistence of follow-up executions.

Every status change is a conditional UPDATE on the current status, so two
processors racing on the same row cannot both win a transition.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from clinic_api.db.enums import FollowUpExecutionStatus
from clinic_api.db.models import FollowUpExecution
from clinic_api.db.types import utcnow
from clinic_api.utils.pagination import PaginationParams, paginate_query


MAX_ERROR_LENGTH = 1000


def _truncate(error: str | None) -> str | None:
    return error[:MAX_ERROR_LENGTH] if error else error


class FollowUpExecutionStore:
    """Execution store bound to one session (request or worker-run scoped)."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Processor contract
    # -------------------------------------------------------------------------

    def select_due(self, now: datetime, limit: int | None) -> list[FollowUpExecution]:
        """
        Pending executions due at or before `now`, across all clinics.

        Ordered by scheduled_for so older follow-ups go out first. `limit=None`
        returns every due row.
        """
        return (
            self.db.query(FollowUpExecution)
            .filter(
                FollowUpExecution.status == FollowUpExecutionStatus.PENDING.value,
                FollowUpExecution.scheduled_for <= now,
            )
            .order_by(FollowUpExecution.scheduled_for, FollowUpExecution.id)
            .limit(limit)
            .all()
        )

    def claim(self, execution_id: UUID, now: datetime | None = None) -> bool:
        """Take ownership of a pending execution. False if someone else got it first."""
        now = now or utcnow()
        return (
            self._transition(
                FollowUpExecution.id == execution_id,
                from_status=FollowUpExecutionStatus.PENDING,
                values={
                    "status": FollowUpExecutionStatus.CLAIMED.value,
                    "claimed_at": now,
                    "updated_at": now,
                },
            )
            == 1
        )

    def complete(
        self,
        execution_id: UUID,
        status: FollowUpExecutionStatus,
        error: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Record the outcome of a claimed execution (sent or failed)."""
        if status not in (FollowUpExecutionStatus.SENT, FollowUpExecutionStatus.FAILED):
            raise ValueError(f"Cannot complete execution with status '{status.value}'")
        now = now or utcnow()
        return (
            self._transition(
                FollowUpExecution.id == execution_id,
                from_status=FollowUpExecutionStatus.CLAIMED,
                values={
                    "status": status.value,
                    "error": _truncate(error),
                    "executed_at": now,
                    "updated_at": now,
                },
            )
            == 1
        )

    def rollback(self) -> None:
        self.db.rollback()

    # -------------------------------------------------------------------------
    # Cancellation (pending -> cancelled)
    # -------------------------------------------------------------------------

    def cancel(
        self,
        execution_id: UUID,
        clinic_id: UUID,
        reason: str,
        now: datetime | None = None,
    ) -> bool:
        return (
            self._transition(
                FollowUpExecution.id == execution_id,
                FollowUpExecution.clinic_id == clinic_id,
                from_status=FollowUpExecutionStatus.PENDING,
                values=self._cancel_values(reason, now),
            )
            == 1
        )

    def cancel_for_follow_up(
        self, follow_up_id: UUID, reason: str, now: datetime | None = None
    ) -> int:
        return self._transition(
            FollowUpExecution.follow_up_id == follow_up_id,
            from_status=FollowUpExecutionStatus.PENDING,
            values=self._cancel_values(reason, now),
        )

    def cancel_for_target(
        self,
        clinic_id: UUID,
        target_id: UUID,
        reason: str,
        now: datetime | None = None,
    ) -> int:
        """Cancel every pending execution for a contact (e.g. appointment cancelled)."""
        return self._transition(
            FollowUpExecution.clinic_id == clinic_id,
            FollowUpExecution.target_id == target_id,
            from_status=FollowUpExecutionStatus.PENDING,
            values=self._cancel_values(reason, now),
        )

    # -------------------------------------------------------------------------
    # Tenant-scoped reads
    # -------------------------------------------------------------------------

    def get_for_clinic(self, execution_id: UUID, clinic_id: UUID) -> FollowUpExecution | None:
        return (
            self.db.query(FollowUpExecution)
            .options(joinedload(FollowUpExecution.follow_up))
            .filter(
                FollowUpExecution.id == execution_id,
                FollowUpExecution.clinic_id == clinic_id,
            )
            .first()
        )

    def list_for_clinic(
        self,
        clinic_id: UUID,
        pagination: PaginationParams,
        status: FollowUpExecutionStatus | None = None,
    ) -> tuple[list[FollowUpExecution], int]:
        query = self.db.query(FollowUpExecution).filter(
            FollowUpExecution.clinic_id == clinic_id
        )
        if status:
            query = query.filter(FollowUpExecution.status == status.value)
        query = query.options(joinedload(FollowUpExecution.follow_up)).order_by(
            FollowUpExecution.scheduled_for.desc(), FollowUpExecution.id
        )
        return paginate_query(query, pagination)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _cancel_values(reason: str, now: datetime | None) -> dict:
        now = now or utcnow()
        return {
            "status": FollowUpExecutionStatus.CANCELLED.value,
            "error": _truncate(reason),
            "executed_at": now,
            "updated_at": now,
        }

    def _transition(
        self,
        *criteria,
        from_status: FollowUpExecutionStatus,
        values: dict,
    ) -> int:
        """Apply `values` to rows matching `criteria` still in `from_status`. Returns rowcount."""
        stmt = (
            update(FollowUpExecution)
            .where(*criteria, FollowUpExecution.status == from_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount
