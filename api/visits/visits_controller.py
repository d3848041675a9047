# api/visits/visits_controller.py

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from api.scheduled_checkouts.scheduled_checkouts_service import ScheduledCheckoutService
from api.visits.visits_model import Visit
from api.visits.visits_schema import VisitCreate, VisitDisplayOut, VisitEnd, VisitOut, VisitUpdate
from api.visits.visits_service import VisitService
from config.settings import settings
from utils.database_utils import utc_now
from utils.query_params import QueryParams

logger = logging.getLogger(__name__)


class VisitController:
    @staticmethod
    def to_out(visit: Visit, now: datetime) -> VisitOut:
        group = visit.active_group
        student = visit.student
        return VisitOut.model_validate({
            "id": visit.id,
            "student_id": visit.student_id,
            "active_group_id": visit.active_group_id,
            "entry_time": visit.entry_time,
            "exit_time": visit.exit_time,
            "is_active": visit.is_active(),
            "is_stale": visit.is_active() and group is not None and not group.is_active(now),
            "checked_in_by": visit.checked_in_by,
            "student_name": student.full_name if student else None,
            "active_group_name": group.display_name if group else None,
            "created_at": visit.created_at,
            "updated_at": visit.updated_at,
        })

    @staticmethod
    def list_visits(
        db: Session,
        active: Optional[bool],
        student_id: Optional[int],
        active_group_id: Optional[int],
        params: QueryParams,
    ) -> List[VisitOut]:
        now = utc_now()
        rows = VisitService(db).list(
            active=active, student_id=student_id, active_group_id=active_group_id, params=params
        )
        return [VisitController.to_out(v, now) for v in rows]

    @staticmethod
    def get_visit(visit_id: int, db: Session) -> VisitOut:
        return VisitController.to_out(VisitService(db).get(visit_id), utc_now())

    @staticmethod
    def create_visit(payload: VisitCreate, db: Session, staff_id: Optional[int]) -> VisitOut:
        now = utc_now()
        visit = VisitService(db).check_in(
            payload.student_id,
            payload.active_group_id,
            entry_time=payload.entry_time,
            checked_in_by=staff_id,
            now=now,
        )
        return VisitController.to_out(visit, now)

    @staticmethod
    def update_visit(visit_id: int, payload: VisitUpdate, db: Session) -> VisitOut:
        visit = VisitService(db).update(visit_id, payload.model_dump(exclude_unset=True))
        return VisitController.to_out(visit, utc_now())

    @staticmethod
    def delete_visit(visit_id: int, db: Session) -> None:
        VisitService(db).delete(visit_id)

    @staticmethod
    def end_visit(visit_id: int, payload: Optional[VisitEnd], db: Session, staff_id: Optional[int]) -> VisitOut:
        now = utc_now()
        visit = VisitService(db).check_out(visit_id, payload.exit_time if payload else None, now=now)
        if settings.CANCEL_PENDING_CHECKOUTS_ON_CHECKOUT:
            ScheduledCheckoutService(db).cancel_pending_for_student(visit.student_id, staff_id, now=now)
        return VisitController.to_out(visit, now)

    @staticmethod
    def list_student_visits(student_id: int, db: Session) -> List[VisitOut]:
        now = utc_now()
        return [VisitController.to_out(v, now) for v in VisitService(db).list_for_student(student_id)]

    @staticmethod
    def current_student_visit(student_id: int, db: Session) -> Optional[VisitOut]:
        visit = VisitService(db).get_current_for_student(student_id)
        if visit is None:
            return None
        return VisitController.to_out(visit, utc_now())

    @staticmethod
    def list_group_visits(active_group_id: int, db: Session, active_only: bool = False) -> List[VisitOut]:
        now = utc_now()
        rows = VisitService(db).list_for_group(active_group_id, active_only=active_only)
        return [VisitController.to_out(v, now) for v in rows]

    @staticmethod
    def display_visits(active_group_id: int, db: Session) -> List[VisitDisplayOut]:
        now = utc_now()
        out = []
        for row in VisitService(db).get_with_display_data(active_group_id):
            base = VisitController.to_out(row["visit"], now).model_dump()
            base.update({
                "student_name": row["student_name"],
                "school_class": row["school_class"],
                "group_name": row["group_name"],
            })
            out.append(VisitDisplayOut.model_validate(base))
        return out
