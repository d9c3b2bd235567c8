"""
Time-triggered endpoints.

Called by an external cron (or manually for testing). Protected by the
trusted-invocation guard: `Authorization: Bearer <FOLLOW_UP_CRON_SECRET>`.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clinic_api.core.deps import get_db, require_trusted_invocation
from clinic_api.core.structured_logging import build_log_context
from clinic_api.schemas.follow_up import ProcessFollowUpsResponse
from clinic_api.services.follow_up_processor import FollowUpProcessor
from clinic_api.services.follow_up_store import FollowUpExecutionStore
from clinic_api.services.messaging_service import MessageDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/follow-ups",
    tags=["internal"],
    dependencies=[Depends(require_trusted_invocation)],
)


def build_processor(db: Session) -> FollowUpProcessor:
    return FollowUpProcessor(
        store=FollowUpExecutionStore(db),
        dispatcher=MessageDispatcher(db),
    )


def _run(request: Request, db: Session):
    try:
        result = build_processor(db).process()
    except Exception:
        db.rollback()
        logger.exception(
            "Error processing follow-ups",
            extra=build_log_context(route=request.url.path, method=request.method),
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return ProcessFollowUpsResponse(
        success=True,
        processed=result.processed,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/process", response_model=ProcessFollowUpsResponse)
def process_follow_ups(request: Request, db: Session = Depends(get_db)):
    """Send every due follow-up (cron entry point)."""
    return _run(request, db)


@router.get("/process", response_model=ProcessFollowUpsResponse)
def process_follow_ups_manual(request: Request, db: Session = Depends(get_db)):
    """Manual trigger for testing; same guard as the cron entry point."""
    return _run(request, db)
