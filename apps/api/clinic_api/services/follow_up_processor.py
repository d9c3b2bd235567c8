"""Follow-up processor - sends every due follow-up execution once.

Each run:
1. selects pending executions with scheduled_for <= now (all clinics)
2. claims each one (pending -> claimed, conditional) so overlapping runs
   never send the same execution twice
3. dispatches the message and records sent/failed

A failing dispatch only fails its own execution, and a store error on one
execution is logged and the run moves on. A failing due-query fails the
whole run and nothing is claimed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from clinic_api.core.config import settings
from clinic_api.core.structured_logging import build_log_context
from clinic_api.db.enums import FollowUpExecutionStatus
from clinic_api.db.models import FollowUpExecution
from clinic_api.db.types import utcnow
from clinic_api.services.follow_up_store import FollowUpExecutionStore

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    success: bool
    error: str | None = None


class Dispatcher(Protocol):
    def send(self, execution: FollowUpExecution) -> DispatchResult: ...


@dataclass
class ProcessResult:
    processed: int = 0  # attempted (claimed) executions, whatever the outcome
    sent: int = 0
    failed: int = 0
    skipped: int = 0  # claim lost to a concurrent run
    errors: int = 0  # store error while claiming or recording an outcome


class FollowUpProcessor:
    def __init__(
        self,
        store: FollowUpExecutionStore,
        dispatcher: Dispatcher,
        batch_size: int | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.batch_size = settings.FOLLOW_UP_BATCH_SIZE if batch_size is None else batch_size

    def process(self, now: datetime | None = None) -> ProcessResult:
        """
        Run one pass over the executions due at `now` (defaults to the current time).

        At most `batch_size` executions are handled per pass, oldest first;
        anything beyond that stays pending for the next pass. A batch size of
        0 removes the cap.
        """
        now = now or utcnow()
        due = self.store.select_due(now, limit=self.batch_size or None)
        # Read before the first commit expires the loaded rows
        due_keys = [(execution.id, execution.clinic_id) for execution in due]

        result = ProcessResult()
        if not due_keys:
            return result

        logger.info("Processing %d pending follow-ups", len(due_keys))

        for execution, (execution_id, clinic_id) in zip(due, due_keys):
            log_context = build_log_context(
                execution_id=str(execution_id), clinic_id=str(clinic_id)
            )
            try:
                self._process_one(execution, execution_id, result, log_context)
            except Exception:
                # A sent message whose outcome could not be recorded stays claimed
                self.store.rollback()
                result.errors += 1
                logger.exception(
                    "Follow-up %s could not be processed", execution_id, extra=log_context
                )

        return result

    def _process_one(
        self,
        execution: FollowUpExecution,
        execution_id,
        result: ProcessResult,
        log_context: dict,
    ) -> None:
        if not self.store.claim(execution_id):
            result.skipped += 1
            logger.info("Follow-up %s already claimed, skipping", execution_id, extra=log_context)
            return

        result.processed += 1
        outcome = self.attempt(execution, log_context)

        if outcome.success:
            self.store.complete(execution_id, FollowUpExecutionStatus.SENT)
            result.sent += 1
        else:
            self.store.complete(
                execution_id,
                FollowUpExecutionStatus.FAILED,
                error=outcome.error or "Unknown error",
            )
            result.failed += 1

        logger.info(
            "Follow-up %s: %s",
            execution_id,
            "sent" if outcome.success else "failed",
            extra=log_context,
        )

    def attempt(self, execution: FollowUpExecution, log_context: dict | None = None) -> DispatchResult:
        """Dispatch one claimed execution. Never raises."""
        execution_id = execution.id
        if log_context is None:
            log_context = build_log_context(
                execution_id=str(execution_id), clinic_id=str(execution.clinic_id)
            )
        try:
            return self.dispatcher.send(execution)
        except Exception as e:
            # Session may be unusable after a failed statement inside the dispatcher
            self.store.rollback()
            logger.exception(
                "Follow-up %s dispatch raised %s",
                execution_id,
                type(e).__name__,
                extra=log_context,
            )
            return DispatchResult(success=False, error=str(e) or type(e).__name__)
