"""Scheduler for the daily overdue sweep."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from taskdesk.core.config import settings
from taskdesk.core.errors import StoreUnavailableError, SweepIncompleteError
from taskdesk.core.recurrence import local_today
from taskdesk.services import overdue_service


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def run_overdue_sweep() -> None:
    """Run the overdue sweep for today in the configured timezone.

    Failed alerts keep their tasks unflagged, so tomorrow's run (or a manual
    trigger) picks them up again.
    """
    today = local_today()
    logger.info("Running overdue sweep job for %s", today.isoformat())

    try:
        count = await overdue_service.sweep(today)
    except SweepIncompleteError as e:
        logger.error(
            "Overdue sweep job incomplete: %d flagged, failed tasks: %s",
            e.flagged_count,
            ", ".join(e.failed_task_ids),
        )
        return
    except StoreUnavailableError as e:
        logger.error("Error in overdue sweep job: %s", e)
        return

    logger.info("Completed overdue sweep job: %d task(s) flagged", count)


def start_scheduler() -> None:
    """Start the scheduler and register the daily sweep.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        run_overdue_sweep,
        trigger=CronTrigger(hour=settings.sweep_hour, minute=0, timezone=settings.timezone),
        id="overdue_sweep",
        name="Flag Overdue Tasks",
        replace_existing=True,
    )
    logger.info("Scheduled overdue sweep job: daily at %d:00 %s", settings.sweep_hour, settings.timezone)

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
