import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from api.scheduled_checkouts.scheduled_checkouts_service import ScheduledCheckoutService
from config.database import SessionLocal
from config.settings import settings
from utils.database_utils import utc_now

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


def process_due_checkouts():
    db: Session = SessionLocal()
    try:
        result = ScheduledCheckoutService(db).process_due(now=utc_now())
        if result.failed:
            logger.warning("%s scheduled checkout(s) failed and stay pending", result.failed)
        return result
    finally:
        db.close()


def start_scheduler() -> BackgroundScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(timezone="UTC")
        _scheduler.add_job(
            process_due_checkouts,
            "interval",
            seconds=settings.SCHEDULED_CHECKOUT_INTERVAL_SECONDS,
            id="process_due_checkouts",
            max_instances=1,
            coalesce=True,
        )
        _scheduler.start()
        logger.info("Scheduler started (every %ss)", settings.SCHEDULED_CHECKOUT_INTERVAL_SECONDS)
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
