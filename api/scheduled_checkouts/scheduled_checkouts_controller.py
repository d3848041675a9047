# api/scheduled_checkouts/scheduled_checkouts_controller.py

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from api.scheduled_checkouts.scheduled_checkouts_schema import (
    ProcessDueResult,
    ScheduledCheckoutCreate,
    ScheduledCheckoutOut,
)
from api.scheduled_checkouts.scheduled_checkouts_service import ScheduledCheckoutService
from utils.database_utils import utc_now
from utils.errors import ActiveError, ErrorKind


class ScheduledCheckoutController:
    @staticmethod
    def schedule(payload: ScheduledCheckoutCreate, db: Session, staff_id: Optional[int]) -> ScheduledCheckoutOut:
        scheduled_by = payload.scheduled_by or staff_id
        if scheduled_by is None:
            raise ActiveError(ErrorKind.FORBIDDEN, "ScheduleCheckout", "user is not a staff member")
        checkout = ScheduledCheckoutService(db).schedule(
            payload.student_id, scheduled_by, payload.scheduled_for, payload.reason
        )
        return ScheduledCheckoutOut.model_validate(checkout)

    @staticmethod
    def get(checkout_id: int, db: Session) -> ScheduledCheckoutOut:
        return ScheduledCheckoutOut.model_validate(ScheduledCheckoutService(db).get(checkout_id))

    @staticmethod
    def cancel(checkout_id: int, db: Session, staff_id: Optional[int]) -> ScheduledCheckoutOut:
        checkout = ScheduledCheckoutService(db).cancel(checkout_id, staff_id, now=utc_now())
        return ScheduledCheckoutOut.model_validate(checkout)

    @staticmethod
    def list_for_student(student_id: int, db: Session) -> List[ScheduledCheckoutOut]:
        rows = ScheduledCheckoutService(db).list_for_student(student_id)
        return [ScheduledCheckoutOut.model_validate(r) for r in rows]

    @staticmethod
    def pending_for_student(student_id: int, db: Session) -> List[ScheduledCheckoutOut]:
        rows = ScheduledCheckoutService(db).get_pending_for_student(student_id)
        return [ScheduledCheckoutOut.model_validate(r) for r in rows]

    @staticmethod
    def process_due(db: Session) -> Tuple[ProcessDueResult, int]:
        """Run the batch and pick the status: 200 all good, 207 partial, 500 nothing worked."""
        result = ScheduledCheckoutService(db).process_due(now=utc_now())
        if result.success:
            return result, 200
        if result.failed == result.total:
            return result, 500
        return result, 207
