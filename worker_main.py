# worker_main.py
"""
Out-of-process runner for scheduled checkouts:
 - registers every model module before touching the database
 - runs ScheduledCheckoutService.process_due once or in a loop
 - exposes CLI flags for manual testing
"""

import argparse
import logging
import sys
import time

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("worker")


def run_due_checkouts() -> int:
    """Process every due checkout once. Returns the number of failed items."""
    from api.scheduled_checkouts.scheduled_checkouts_service import ScheduledCheckoutService
    from config.database import SessionLocal
    from utils.database_utils import utc_now

    db = SessionLocal()
    try:
        result = ScheduledCheckoutService(db).process_due(now=utc_now())
        logger.info(
            "▶️ Due checkouts: total=%s executed=%s checked_out=%s no_visit=%s skipped=%s failed=%s",
            result.total, result.executed, result.checked_out, result.no_visit, result.skipped, result.failed,
        )
        for item in result.items:
            if item.outcome == "failed":
                logger.warning("❌ Scheduled checkout %s: %s", item.scheduled_checkout_id, item.error)
        return result.failed
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Scheduled checkout worker")
    parser.add_argument("--interval", type=int, help="Interval in seconds between runs (loop mode)")
    parser.add_argument("--run-due", action="store_true", help="Process due checkouts once")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    from config.logging_config import setup_logging
    from models.index import import_all_models

    setup_logging("DEBUG" if args.debug else None)
    import_all_models()
    logger.debug("Debug logging enabled")

    # ✅ Loop mode if --interval is provided
    if args.interval:
        logger.info(f"▶️ Worker started in loop mode (interval={args.interval}s)")
        while True:
            try:
                run_due_checkouts()
            except SQLAlchemyError:
                logger.exception("❌ Worker loop error")
            time.sleep(args.interval)

    # ✅ One-shot mode
    if not args.run_due:
        logger.info("▶️ worker_main executed (no jobs run). Use --run-due or --interval.")
        return 0

    logger.info("▶️ Running process_due()")
    failed = run_due_checkouts()
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
