# api/scheduled_checkouts/scheduled_checkouts_service.py

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.notifications.notifications_service import emit, scheduled_checkout_executed, student_checked_out
from api.scheduled_checkouts.scheduled_checkouts_model import ScheduledCheckout, ScheduledCheckoutStatus
from api.scheduled_checkouts.scheduled_checkouts_schema import ProcessDueItem, ProcessDueResult
from api.staff.staff_model import Staff
from api.students.students_model import Student
from api.visits.visits_service import VisitService
from utils.database_utils import DatabaseUtils
from utils.errors import ActiveError, ErrorKind, database_error

logger = logging.getLogger(__name__)

PENDING = ScheduledCheckoutStatus.pending


class ScheduledCheckoutService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, checkout_id: int, op: str = "GetScheduledCheckout") -> ScheduledCheckout:
        return DatabaseUtils.get_by_id_or_raise(
            self.db, ScheduledCheckout, checkout_id, ErrorKind.SCHEDULED_CHECKOUT_NOT_FOUND, op
        )

    def _commit(self, op: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise database_error(op, exc)

    def schedule(
        self,
        student_id: int,
        scheduled_by: int,
        scheduled_for: datetime,
        reason: Optional[str] = None,
    ) -> ScheduledCheckout:
        op = "ScheduleCheckout"
        if not DatabaseUtils.exists(self.db, Student, id=student_id):
            raise ActiveError(ErrorKind.STUDENT_NOT_FOUND, op, f"student {student_id}")
        if not DatabaseUtils.exists(self.db, Staff, id=scheduled_by):
            raise ActiveError(ErrorKind.STAFF_NOT_FOUND, op, f"staff {scheduled_by}")

        checkout = ScheduledCheckout(
            student_id=student_id,
            scheduled_by=scheduled_by,
            scheduled_for=scheduled_for,
            reason=reason,
            status=PENDING,
        )
        self.db.add(checkout)
        self._commit(op)
        self.db.refresh(checkout)
        logger.info("Checkout for student %s scheduled at %s (id %s)", student_id, scheduled_for.isoformat(), checkout.id)
        return checkout

    def cancel(self, checkout_id: int, cancelled_by: Optional[int], *, now: datetime) -> ScheduledCheckout:
        op = "CancelScheduledCheckout"
        checkout = self.get(checkout_id, op)
        if checkout.status != PENDING:
            raise ActiveError(ErrorKind.SCHEDULED_CHECKOUT_ALREADY_PROCESSED, op, checkout.status.value)

        # only a pending record can be cancelled; loses against a concurrent execution
        updated = (
            self.db.query(ScheduledCheckout)
            .filter(ScheduledCheckout.id == checkout_id, ScheduledCheckout.status == PENDING)
            .update(
                {
                    ScheduledCheckout.status: ScheduledCheckoutStatus.cancelled,
                    ScheduledCheckout.cancelled_at: now,
                    ScheduledCheckout.cancelled_by: cancelled_by,
                    ScheduledCheckout.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.db.rollback()
            raise ActiveError(ErrorKind.SCHEDULED_CHECKOUT_ALREADY_PROCESSED, op)
        self._commit(op)
        self.db.refresh(checkout)
        logger.info("Scheduled checkout %s cancelled by %s", checkout_id, cancelled_by)
        return checkout

    def cancel_pending_for_student(self, student_id: int, cancelled_by: Optional[int], *, now: datetime) -> int:
        op = "CancelPendingScheduledCheckouts"
        cancelled = (
            self.db.query(ScheduledCheckout)
            .filter(ScheduledCheckout.student_id == student_id, ScheduledCheckout.status == PENDING)
            .update(
                {
                    ScheduledCheckout.status: ScheduledCheckoutStatus.cancelled,
                    ScheduledCheckout.cancelled_at: now,
                    ScheduledCheckout.cancelled_by: cancelled_by,
                    ScheduledCheckout.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        self._commit(op)
        if cancelled:
            logger.info("Cancelled %s pending checkout(s) for student %s", cancelled, student_id)
        return cancelled

    def list_for_student(self, student_id: int) -> List[ScheduledCheckout]:
        return (
            self.db.query(ScheduledCheckout)
            .filter(ScheduledCheckout.student_id == student_id)
            .order_by(ScheduledCheckout.scheduled_for.desc())
            .all()
        )

    def get_pending_for_student(self, student_id: int) -> List[ScheduledCheckout]:
        return (
            self.db.query(ScheduledCheckout)
            .filter(ScheduledCheckout.student_id == student_id, ScheduledCheckout.status == PENDING)
            .order_by(ScheduledCheckout.scheduled_for.asc())
            .all()
        )

    # ------------------------------------------
    # Batch execution
    # ------------------------------------------
    def _execute_one(self, checkout_id: int, student_id: int, scheduled_for: datetime, now: datetime) -> ProcessDueItem:
        # 1️⃣ claim the record; another runner or a cancel may have won
        claimed = (
            self.db.query(ScheduledCheckout)
            .filter(ScheduledCheckout.id == checkout_id, ScheduledCheckout.status == PENDING)
            .update(
                {
                    ScheduledCheckout.status: ScheduledCheckoutStatus.executed,
                    ScheduledCheckout.executed_at: now,
                    ScheduledCheckout.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if claimed == 0:
            self.db.rollback()
            return ProcessDueItem(scheduled_checkout_id=checkout_id, student_id=student_id, outcome="skipped",
                                  error="no longer pending")

        # 2️⃣ find the visit it was meant to end
        visits = VisitService(self.db)
        visit = visits.get_current_for_student(student_id)
        if visit is None or visit.entry_time > scheduled_for:
            self.db.commit()
            return ProcessDueItem(scheduled_checkout_id=checkout_id, student_id=student_id, outcome="executed")

        # 3️⃣ close it at the scheduled instant
        closed = visits.close_visit(visit, scheduled_for, now=now, commit=False)
        self.db.commit()
        if not closed:
            return ProcessDueItem(scheduled_checkout_id=checkout_id, student_id=student_id, outcome="executed")
        return ProcessDueItem(scheduled_checkout_id=checkout_id, student_id=student_id, outcome="checked_out",
                              visit_id=visit.id)

    def process_due(self, *, now: datetime) -> ProcessDueResult:
        """
        Execute every pending checkout whose time has come. Each record is
        handled in its own transaction; a failing record stays pending for
        the next run and does not affect the others.
        """
        due = (
            self.db.query(ScheduledCheckout.id, ScheduledCheckout.student_id, ScheduledCheckout.scheduled_for)
            .filter(ScheduledCheckout.status == PENDING, ScheduledCheckout.scheduled_for <= now)
            .order_by(ScheduledCheckout.scheduled_for.asc(), ScheduledCheckout.id.asc())
            .all()
        )
        # release the read so each item starts a fresh transaction
        self.db.rollback()

        result = ProcessDueResult(total=len(due))
        for checkout_id, student_id, scheduled_for in due:
            try:
                item = self._execute_one(checkout_id, student_id, scheduled_for, now)
            except (SQLAlchemyError, ActiveError) as exc:
                self.db.rollback()
                logger.warning("Scheduled checkout %s failed: %s", checkout_id, exc)
                # callers only ever see the error code, never driver or SQL text
                code = exc.kind.value if isinstance(exc, ActiveError) else ErrorKind.DATABASE_ERROR.value
                item = ProcessDueItem(scheduled_checkout_id=checkout_id, student_id=student_id,
                                      outcome="failed", error=code)

            # executed + skipped + failed == total; checked_out and no_visit split executed
            if item.outcome == "failed":
                result.failed += 1
            elif item.outcome == "skipped":
                result.skipped += 1
            else:
                result.executed += 1
                if item.outcome == "checked_out":
                    result.checked_out += 1
                    emit(student_checked_out, self, student_id=student_id, visit_id=item.visit_id,
                         scheduled_checkout_id=checkout_id)
                else:
                    result.no_visit += 1
                emit(scheduled_checkout_executed, self, scheduled_checkout_id=checkout_id, student_id=student_id)
            result.items.append(item)

        if result.total:
            logger.info(
                "Processed %s due checkout(s): executed=%s checked_out=%s no_visit=%s skipped=%s failed=%s",
                result.total, result.executed, result.checked_out, result.no_visit, result.skipped, result.failed,
            )
        return result
