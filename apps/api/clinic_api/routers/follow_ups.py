"""Follow-ups router - rules, scheduling and execution history (clinic-scoped)."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clinic_api.core.deps import get_current_session, get_db, require_csrf_header
from clinic_api.db.enums import FollowUpExecutionStatus
from clinic_api.schemas.auth import UserSession
from clinic_api.schemas.follow_up import (
    CancelExecutionRequest,
    FollowUpCreate,
    FollowUpExecutionListResponse,
    FollowUpExecutionRead,
    FollowUpRead,
    FollowUpUpdate,
    FollowUpWithStats,
    PaginationMeta,
    ScheduleFollowUpRequest,
)
from clinic_api.services import follow_up_service
from clinic_api.services.follow_up_service import (
    ExecutionNotFoundError,
    ExecutionNotPendingError,
    FollowUpForbiddenError,
    FollowUpNotFoundError,
    TargetNotFoundError,
)
from clinic_api.services.follow_up_store import FollowUpExecutionStore
from clinic_api.utils.pagination import PaginationParams, get_pagination, page_count

router = APIRouter(prefix="/follow-ups", tags=["follow-ups"])


def _get_follow_up_or_raise(db: Session, follow_up_id: UUID, session: UserSession):
    try:
        return follow_up_service.get_follow_up(db, follow_up_id, session.clinic_id)
    except FollowUpNotFoundError:
        raise HTTPException(status_code=404, detail="Follow-up not found")
    except FollowUpForbiddenError:
        raise HTTPException(status_code=403, detail="Forbidden")


def _parse_status(status: str | None) -> FollowUpExecutionStatus | None:
    if not status:
        return None
    try:
        return FollowUpExecutionStatus(status.strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in FollowUpExecutionStatus)
        raise HTTPException(
            status_code=422, detail=f"Invalid status '{status}'. Allowed: {allowed}"
        )


# =============================================================================
# Rules
# =============================================================================

@router.get("", response_model=list[FollowUpWithStats])
def list_follow_ups(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List the clinic's follow-up rules with execution counts."""
    return [
        FollowUpWithStats(
            **FollowUpRead.model_validate(follow_up).model_dump(),
            stats=stats,
        )
        for follow_up, stats in follow_up_service.list_follow_ups_with_stats(
            db, session.clinic_id
        )
    ]


@router.post(
    "",
    response_model=FollowUpRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_follow_up(
    data: FollowUpCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return follow_up_service.create_follow_up(db, session.clinic_id, data)


@router.patch(
    "/{follow_up_id}",
    response_model=FollowUpRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_follow_up(
    follow_up_id: UUID,
    data: FollowUpUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    follow_up = _get_follow_up_or_raise(db, follow_up_id, session)
    return follow_up_service.update_follow_up(db, follow_up, data)


@router.delete("/{follow_up_id}", dependencies=[Depends(require_csrf_header)])
def delete_follow_up(
    follow_up_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Deactivate a rule and cancel its pending executions."""
    follow_up = _get_follow_up_or_raise(db, follow_up_id, session)
    cancelled = follow_up_service.delete_follow_up(db, follow_up)
    return {"message": "Follow-up deleted successfully", "cancelled_executions": cancelled}


# =============================================================================
# Scheduling
# =============================================================================

@router.post(
    "/schedule",
    response_model=list[FollowUpExecutionRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def schedule_follow_up(
    data: ScheduleFollowUpRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Report a trigger event for a contact.

    Creates one pending execution per active matching rule. Returns an
    empty list when no rule matches.
    """
    try:
        return follow_up_service.schedule_follow_up(
            db,
            clinic_id=session.clinic_id,
            trigger=data.trigger,
            target_type=data.target_type,
            target_id=data.target_id,
            reference_date=data.reference_date,
            variables={
                "date": data.date,
                "time": data.time,
                "professional": data.professional,
            },
        )
    except TargetNotFoundError:
        raise HTTPException(status_code=404, detail="Target not found")


# =============================================================================
# Executions
# =============================================================================

@router.get("/executions", response_model=FollowUpExecutionListResponse)
def list_executions(
    status: str | None = Query(None, description="Filter by status (case-insensitive)"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Paginated execution history for the current clinic, newest schedule first."""
    status_filter = _parse_status(status)
    executions, total = FollowUpExecutionStore(db).list_for_clinic(
        session.clinic_id, pagination, status=status_filter
    )
    return FollowUpExecutionListResponse(
        executions=[FollowUpExecutionRead.model_validate(e) for e in executions],
        pagination=PaginationMeta(
            page=pagination.page,
            limit=pagination.limit,
            total=total,
            pages=page_count(total, pagination.limit),
        ),
    )


@router.post(
    "/executions/{execution_id}/cancel",
    response_model=FollowUpExecutionRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_execution(
    execution_id: UUID,
    data: CancelExecutionRequest | None = Body(None),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Cancel a pending execution. Claimed or finished executions cannot be cancelled."""
    reason = (data or CancelExecutionRequest()).reason
    try:
        return follow_up_service.cancel_execution(db, execution_id, session.clinic_id, reason)
    except ExecutionNotFoundError:
        raise HTTPException(status_code=404, detail="Execution not found")
    except ExecutionNotPendingError:
        raise HTTPException(status_code=409, detail="Execution is no longer pending")
