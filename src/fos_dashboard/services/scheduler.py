"""Background scheduler for cache housekeeping and database keepalive."""

import logging
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]

from fos_dashboard.core.cache import response_cache
from fos_dashboard.core.config import settings
from fos_dashboard.core.database import async_session_factory
from fos_dashboard.services.ingestion_status import warm_database

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def purge_response_cache() -> None:
    """Drop expired trend responses from the in-process cache."""
    removed = response_cache.purge_expired()
    if removed:
        logger.debug("Purged %s expired cached responses", removed)


async def keep_database_warm() -> None:
    """Run the keepalive query against the configured database."""
    async with async_session_factory() as db:
        result = await warm_database(db)
    logger.info(
        "Database keepalive: %s decisions, latest %s (%sms)",
        result.total_cases,
        result.latest_decision_date,
        result.duration_ms,
    )


def start_scheduler() -> AsyncIOScheduler:
    """Start the APScheduler instance for housekeeping jobs."""
    global _scheduler
    if _scheduler is not None:
        return _scheduler

    scheduler = AsyncIOScheduler(timezone=timezone.utc)
    scheduler.add_job(
        purge_response_cache,
        IntervalTrigger(minutes=1, timezone=timezone.utc),
        id="response-cache-purge",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=30,
    )
    if settings.keepalive_interval_minutes > 0:
        scheduler.add_job(
            keep_database_warm,
            IntervalTrigger(minutes=settings.keepalive_interval_minutes, timezone=timezone.utc),
            id="database-keepalive",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )
    scheduler.start()
    logger.info("Background scheduler started")
    _scheduler = scheduler
    return scheduler


def shutdown_scheduler() -> None:
    """Stop the APScheduler instance."""
    global _scheduler
    if _scheduler is None:
        return
    _scheduler.shutdown(wait=False)
    logger.info("Background scheduler stopped")
    _scheduler = None
