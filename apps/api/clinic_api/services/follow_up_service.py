"""Follow-up service - rule management and execution scheduling."""

import logging
import re
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_api.db.enums import FollowUpExecutionStatus, FollowUpTargetType, FollowUpTrigger
from clinic_api.db.models import Clinic, FollowUp, FollowUpExecution, Lead, Patient
from clinic_api.db.types import utcnow
from clinic_api.schemas.follow_up import FollowUpCreate, FollowUpStats, FollowUpUpdate
from clinic_api.services.follow_up_store import FollowUpExecutionStore

logger = logging.getLogger(__name__)

RULE_DELETED_REASON = "Follow-up rule deleted"

_TEMPLATE_VARIABLE = re.compile(r"\{(\w+)\}")

# Columns that may be cleared with an explicit null in a partial update
_NULLABLE_FIELDS = {"description"}


class FollowUpServiceError(Exception):
    """Base exception for follow-up service errors."""

    pass


class FollowUpNotFoundError(FollowUpServiceError):
    """Follow-up rule not found."""

    pass


class FollowUpForbiddenError(FollowUpServiceError):
    """Follow-up rule belongs to another clinic."""

    pass


class TargetNotFoundError(FollowUpServiceError):
    """Lead/patient not found in the clinic."""

    pass


class ExecutionNotFoundError(FollowUpServiceError):
    """Execution not found in the clinic."""

    pass


class ExecutionNotPendingError(FollowUpServiceError):
    """Execution already left the pending state."""

    pass


# =============================================================================
# Templates
# =============================================================================

def render_message_template(template: str, variables: dict[str, str | None]) -> str:
    """
    Replace {variable} placeholders.

    Known variables with no value become empty strings; unknown
    placeholders are left as written.
    """
    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        return variables[key] or ""

    return _TEMPLATE_VARIABLE.sub(replace, template)


# =============================================================================
# Rules
# =============================================================================

def get_follow_up(db: Session, follow_up_id: UUID, clinic_id: UUID) -> FollowUp:
    """
    Load a rule for the clinic.

    Raises:
        FollowUpNotFoundError: unknown id
        FollowUpForbiddenError: rule belongs to another clinic
    """
    follow_up = db.query(FollowUp).filter(FollowUp.id == follow_up_id).first()
    if not follow_up:
        raise FollowUpNotFoundError(str(follow_up_id))
    if follow_up.clinic_id != clinic_id:
        raise FollowUpForbiddenError(str(follow_up_id))
    return follow_up


def list_follow_ups_with_stats(
    db: Session, clinic_id: UUID
) -> list[tuple[FollowUp, FollowUpStats]]:
    """List a clinic's rules (newest first) with execution counts per status."""
    follow_ups = (
        db.query(FollowUp)
        .filter(FollowUp.clinic_id == clinic_id)
        .order_by(FollowUp.created_at.desc())
        .all()
    )

    counts: dict[UUID, dict[str, int]] = {}
    rows = (
        db.query(
            FollowUpExecution.follow_up_id,
            FollowUpExecution.status,
            func.count(FollowUpExecution.id),
        )
        .filter(FollowUpExecution.clinic_id == clinic_id)
        .group_by(FollowUpExecution.follow_up_id, FollowUpExecution.status)
        .all()
    )
    for follow_up_id, status, count in rows:
        counts.setdefault(follow_up_id, {})[status] = count

    result = []
    for follow_up in follow_ups:
        by_status = counts.get(follow_up.id, {})
        stats = FollowUpStats(
            total=sum(by_status.values()),
            **{
                status.value: by_status.get(status.value, 0)
                for status in FollowUpExecutionStatus
            },
        )
        result.append((follow_up, stats))
    return result


def create_follow_up(db: Session, clinic_id: UUID, data: FollowUpCreate) -> FollowUp:
    follow_up = FollowUp(
        clinic_id=clinic_id,
        name=data.name,
        description=data.description,
        trigger=data.trigger.value,
        target_type=data.target_type.value,
        delay_days=data.delay_days,
        message_template=data.message_template,
        active=data.active,
    )
    db.add(follow_up)
    db.commit()
    db.refresh(follow_up)
    return follow_up


def update_follow_up(db: Session, follow_up: FollowUp, data: FollowUpUpdate) -> FollowUp:
    """Apply a partial update; explicit nulls only clear nullable fields."""
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field not in _NULLABLE_FIELDS:
            continue
        if isinstance(value, (FollowUpTrigger, FollowUpTargetType)):
            value = value.value
        setattr(follow_up, field, value)
    db.commit()
    db.refresh(follow_up)
    return follow_up


def delete_follow_up(db: Session, follow_up: FollowUp) -> int:
    """
    Soft delete a rule and cancel its pending executions.

    Returns the number of executions cancelled.
    """
    follow_up.active = False
    db.commit()
    cancelled = FollowUpExecutionStore(db).cancel_for_follow_up(
        follow_up.id, RULE_DELETED_REASON
    )
    logger.info("Follow-up %s deactivated, %d pending executions cancelled", follow_up.id, cancelled)
    return cancelled


# =============================================================================
# Scheduling
# =============================================================================

def _load_target(
    db: Session, clinic_id: UUID, target_type: FollowUpTargetType, target_id: UUID
) -> Lead | Patient | None:
    model = Lead if target_type == FollowUpTargetType.LEAD else Patient
    return db.query(model).filter(model.id == target_id, model.clinic_id == clinic_id).first()


def schedule_follow_up(
    db: Session,
    clinic_id: UUID,
    trigger: FollowUpTrigger,
    target_type: FollowUpTargetType,
    target_id: UUID,
    reference_date: datetime | None = None,
    variables: dict[str, str | None] | None = None,
) -> list[FollowUpExecution]:
    """
    Create one pending execution per active rule matching the trigger.

    scheduled_for = reference_date (default: now) + rule.delay_days.
    The message is rendered now, so later edits to the rule do not change
    already scheduled executions.

    Raises:
        TargetNotFoundError: contact does not exist in this clinic
    """
    rules = (
        db.query(FollowUp)
        .filter(
            FollowUp.clinic_id == clinic_id,
            FollowUp.trigger == trigger.value,
            FollowUp.target_type == target_type.value,
            FollowUp.active.is_(True),
        )
        .all()
    )
    if not rules:
        logger.info("No active follow-up rules for trigger %s", trigger.value)
        return []

    target = _load_target(db, clinic_id, target_type, target_id)
    if not target:
        raise TargetNotFoundError(f"{target_type.value} {target_id}")

    clinic = db.query(Clinic).filter(Clinic.id == clinic_id).first()
    template_variables = {
        "date": None,
        "time": None,
        "professional": None,
        **(variables or {}),
        "name": target.name,
        "clinic": clinic.name if clinic else "",
    }
    reference = reference_date or utcnow()
    now = utcnow()

    executions = []
    for rule in rules:
        execution = FollowUpExecution(
            follow_up_id=rule.id,
            clinic_id=clinic_id,
            target_id=target_id,
            target_type=target_type.value,
            message=render_message_template(rule.message_template, template_variables),
            scheduled_for=reference + timedelta(days=rule.delay_days),
            status=FollowUpExecutionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        db.add(execution)
        executions.append(execution)

    db.commit()
    for execution in executions:
        db.refresh(execution)
        logger.info(
            "Scheduled follow-up %s for %s %s at %s",
            execution.follow_up_id,
            target_type.value,
            target_id,
            execution.scheduled_for.isoformat(),
        )
    return executions


# =============================================================================
# Executions
# =============================================================================

def cancel_execution(
    db: Session, execution_id: UUID, clinic_id: UUID, reason: str
) -> FollowUpExecution:
    """
    Cancel one pending execution of the clinic.

    Raises:
        ExecutionNotFoundError: unknown id or another clinic's execution
        ExecutionNotPendingError: already claimed, sent, failed or cancelled
    """
    store = FollowUpExecutionStore(db)
    if store.get_for_clinic(execution_id, clinic_id) is None:
        raise ExecutionNotFoundError(str(execution_id))
    if not store.cancel(execution_id, clinic_id, reason):
        raise ExecutionNotPendingError(str(execution_id))
    return store.get_for_clinic(execution_id, clinic_id)
