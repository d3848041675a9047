# api/visits/visits_service.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.active_groups.active_groups_model import ActiveGroup
from api.notifications.notifications_service import emit, student_checked_in, student_checked_out
from api.students.students_model import EducationGroup, Student
from api.visits.visits_model import Visit
from utils.database_utils import DatabaseUtils
from utils.errors import ActiveError, ErrorKind, database_error, is_unique_violation
from utils.query_params import DEFAULT_PARAMS, QueryParams

logger = logging.getLogger(__name__)


class VisitService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, visit_id: int, op: str = "GetVisit") -> Visit:
        return DatabaseUtils.get_by_id_or_raise(self.db, Visit, visit_id, ErrorKind.VISIT_NOT_FOUND, op)

    def _commit(self, op: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            # the open-visit index is the only unique key a visit write can trip
            if is_unique_violation(exc):
                raise ActiveError(ErrorKind.STUDENT_ALREADY_ACTIVE, op)
            raise database_error(op, exc)

    # ------------------------------------------
    # Check-in / check-out
    # ------------------------------------------
    def check_in(
        self,
        student_id: int,
        active_group_id: int,
        entry_time: Optional[datetime] = None,
        checked_in_by: Optional[int] = None,
        *,
        now: datetime,
    ) -> Visit:
        op = "CreateVisit"
        if not DatabaseUtils.exists(self.db, Student, id=student_id):
            raise ActiveError(ErrorKind.STUDENT_NOT_FOUND, op, f"student {student_id}")

        group = DatabaseUtils.get_by_id_or_raise(
            self.db, ActiveGroup, active_group_id, ErrorKind.ACTIVE_GROUP_NOT_FOUND, op
        )
        if not group.is_active(now):
            raise ActiveError(ErrorKind.ACTIVE_GROUP_ALREADY_ENDED, op)

        current = self.get_current_for_student(student_id)
        if current is not None:
            raise ActiveError(
                ErrorKind.STUDENT_ALREADY_ACTIVE, op,
                f"open visit {current.id} in active group {current.active_group_id}",
            )

        visit = Visit(
            student_id=student_id,
            active_group_id=active_group_id,
            entry_time=entry_time or now,
            checked_in_by=checked_in_by,
        )
        self.db.add(visit)
        group.last_activity = now
        self._commit(op)
        self.db.refresh(visit)

        logger.info("Student %s checked in to active group %s (visit %s)", student_id, active_group_id, visit.id)
        emit(student_checked_in, self, student_id=student_id, active_group_id=active_group_id, visit_id=visit.id)
        return visit

    def close_visit(self, visit: Visit, exit_time: datetime, *, now: datetime, commit: bool = True) -> bool:
        """
        Set the exit time if the visit is still open. Returns False when
        another writer closed it first.
        """
        updated = (
            self.db.query(Visit)
            .filter(Visit.id == visit.id, Visit.exit_time.is_(None))
            .update({Visit.exit_time: exit_time, Visit.updated_at: now}, synchronize_session=False)
        )
        if updated and commit:
            self._commit("EndVisit")
        return bool(updated)

    def check_out(self, visit_id: int, exit_time: Optional[datetime] = None, *, now: datetime) -> Visit:
        op = "EndVisit"
        visit = self.get(visit_id, op)
        if not visit.is_active():
            raise ActiveError(ErrorKind.VISIT_ALREADY_ENDED, op)

        exit_time = exit_time or now
        if exit_time < visit.entry_time:
            raise ActiveError(ErrorKind.INVALID_TIME_RANGE, op, "exit before entry")

        if not self.close_visit(visit, exit_time, now=now):
            self.db.rollback()
            raise ActiveError(ErrorKind.VISIT_ALREADY_ENDED, op)
        self.db.refresh(visit)

        logger.info("Student %s checked out of active group %s (visit %s)", visit.student_id, visit.active_group_id, visit.id)
        emit(student_checked_out, self, student_id=visit.student_id, active_group_id=visit.active_group_id, visit_id=visit.id)
        return visit

    def end(self, visit_id: int, *, now: datetime) -> Visit:
        return self.check_out(visit_id, None, now=now)

    # ------------------------------------------
    # Queries
    # ------------------------------------------
    def get_current_for_student(self, student_id: int) -> Optional[Visit]:
        """The student's open visit, or None when they are not checked in."""
        return (
            self.db.query(Visit)
            .filter(Visit.student_id == student_id, Visit.exit_time.is_(None))
            .first()
        )

    def list_for_student(self, student_id: int) -> List[Visit]:
        return (
            self.db.query(Visit)
            .filter(Visit.student_id == student_id)
            .order_by(Visit.entry_time.desc())
            .all()
        )

    def list_for_group(self, active_group_id: int, active_only: bool = False) -> List[Visit]:
        query = self.db.query(Visit).filter(Visit.active_group_id == active_group_id)
        if active_only:
            query = query.filter(Visit.exit_time.is_(None))
        return query.order_by(Visit.entry_time.desc()).all()

    def get_with_display_data(self, active_group_id: int) -> List[Dict[str, Any]]:
        """Open visits of a session joined with student name, class and group."""
        DatabaseUtils.get_by_id_or_raise(
            self.db, ActiveGroup, active_group_id, ErrorKind.ACTIVE_GROUP_NOT_FOUND, "GetVisitsWithDisplayData"
        )
        rows = (
            self.db.query(Visit, Student, EducationGroup.name)
            .join(Student, Student.id == Visit.student_id)
            .outerjoin(EducationGroup, EducationGroup.id == Student.education_group_id)
            .filter(Visit.active_group_id == active_group_id, Visit.exit_time.is_(None))
            .order_by(Visit.entry_time.desc())
            .all()
        )
        return [
            {
                "visit": visit,
                "student_name": student.full_name,
                "school_class": student.school_class,
                "group_name": group_name,
            }
            for visit, student, group_name in rows
        ]

    def list(
        self,
        *,
        active: Optional[bool] = None,
        student_id: Optional[int] = None,
        active_group_id: Optional[int] = None,
        params: QueryParams = DEFAULT_PARAMS,
    ) -> List[Visit]:
        query = self.db.query(Visit)
        if active is True:
            query = query.filter(Visit.exit_time.is_(None))
        elif active is False:
            query = query.filter(Visit.exit_time.isnot(None))
        if student_id is not None:
            query = query.filter(Visit.student_id == student_id)
        if active_group_id is not None:
            query = query.filter(Visit.active_group_id == active_group_id)
        return params.apply(query, Visit).all()

    # ------------------------------------------
    # Administrative corrections
    # ------------------------------------------
    def update(self, visit_id: int, data: Dict[str, Any]) -> Visit:
        op = "UpdateVisit"
        visit = self.get(visit_id, op)

        entry_time = data.get("entry_time") or visit.entry_time
        exit_time = data["exit_time"] if "exit_time" in data else visit.exit_time
        if exit_time is not None and exit_time < entry_time:
            raise ActiveError(ErrorKind.INVALID_TIME_RANGE, op, "exit before entry")

        if "active_group_id" in data and data["active_group_id"] != visit.active_group_id:
            DatabaseUtils.get_by_id_or_raise(
                self.db, ActiveGroup, data["active_group_id"], ErrorKind.ACTIVE_GROUP_NOT_FOUND, op
            )
            visit.active_group_id = data["active_group_id"]

        visit.entry_time = entry_time
        visit.exit_time = exit_time
        self._commit(op)
        self.db.refresh(visit)
        return visit

    def delete(self, visit_id: int) -> None:
        op = "DeleteVisit"
        visit = self.get(visit_id, op)
        self.db.delete(visit)
        self._commit(op)
        logger.info("Visit %s deleted", visit_id)
