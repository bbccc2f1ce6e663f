"""Cron worker for the credit expiry sweep.

Runs as its own process (``python -m lessonbook.workers.scheduler``), apart
from the API. The sweep is idempotent, so overlapping with a manual trigger of
``POST /api/v1/jobs/expire-credits`` is harmless.
"""
import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import get_settings
from ..db.store import TransactionalStore, get_store
from ..services import credit_service

logger = logging.getLogger(__name__)


def expire_credits_job(store: TransactionalStore | None = None) -> credit_service.ExpirySummary | None:
    store = store or get_store()
    logger.info("Starting scheduled credit expiration job")
    try:
        summary = credit_service.expire_credits(store)
    except Exception:
        logger.exception("Error during credit expiration")
        return None
    logger.info(
        "Credit expiration job completed",
        extra={
            "total_expired": summary.total_expired,
            "affected_accounts": summary.affected_accounts,
            "failed": summary.failed,
        },
    )
    return summary


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        expire_credits_job,
        "cron",
        hour=settings.credit_expiry_hour,
        minute=0,
        id="expire_credits",
        coalesce=True,
        max_instances=1,
    )
    return scheduler


async def _run() -> None:
    scheduler = get_scheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_run())


if __name__ == "__main__":
    main()
