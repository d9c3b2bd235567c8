"""
Background worker for sending due follow-ups.

Usage:
    python -m clinic_api.worker

Runs the follow-up processor every FOLLOW_UP_POLL_INTERVAL_SECONDS. Use it
instead of (or alongside) an external cron calling POST /follow-ups/process;
overlapping runs are safe because every execution is claimed before sending.
"""

import asyncio
import logging

from clinic_api.core.config import settings
from clinic_api.core.structured_logging import build_log_context
from clinic_api.db.session import SessionLocal
from clinic_api.services.follow_up_processor import FollowUpProcessor, ProcessResult
from clinic_api.services.follow_up_store import FollowUpExecutionStore
from clinic_api.services.messaging_service import MessageDispatcher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_once() -> ProcessResult:
    """One processor run in its own session."""
    with SessionLocal() as db:
        processor = FollowUpProcessor(
            store=FollowUpExecutionStore(db),
            dispatcher=MessageDispatcher(db),
        )
        return processor.process()


async def worker_loop() -> None:
    """Main worker loop - processes due follow-ups on a fixed interval."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)",
        settings.FOLLOW_UP_POLL_INTERVAL_SECONDS,
        settings.FOLLOW_UP_BATCH_SIZE,
    )

    while True:
        try:
            result = await asyncio.to_thread(run_once)
            if result.processed or result.skipped or result.errors:
                logger.info(
                    "Follow-up run: processed=%d sent=%d failed=%d skipped=%d errors=%d",
                    result.processed,
                    result.sent,
                    result.failed,
                    result.skipped,
                    result.errors,
                )
        except Exception:
            logger.exception(
                "Error in worker loop",
                extra=build_log_context(route="worker", method="background"),
            )

        await asyncio.sleep(settings.FOLLOW_UP_POLL_INTERVAL_SECONDS)


def main() -> None:
    """Entry point for the worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
