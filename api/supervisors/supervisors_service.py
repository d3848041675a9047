# api/supervisors/supervisors_service.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.active_groups.active_groups_model import ActiveGroup
from api.active_groups.active_groups_service import validate_time_range
from api.notifications.notifications_service import emit, group_claimed
from api.staff.staff_model import Staff
from api.supervisors.group_supervisors_model import DEFAULT_ROLE, GroupSupervisor
from utils.database_utils import DatabaseUtils
from utils.errors import ActiveError, ErrorKind, database_error, is_unique_violation
from utils.query_params import DEFAULT_PARAMS, QueryParams

logger = logging.getLogger(__name__)


class SupervisorService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, supervision_id: int, op: str = "GetGroupSupervisor") -> GroupSupervisor:
        return DatabaseUtils.get_by_id_or_raise(
            self.db, GroupSupervisor, supervision_id, ErrorKind.GROUP_SUPERVISOR_NOT_FOUND, op
        )

    def _commit(self, op: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if is_unique_violation(exc):
                raise ActiveError(ErrorKind.STAFF_ALREADY_SUPERVISING, op)
            raise database_error(op, exc)

    def _require_staff(self, staff_id: int, op: str) -> None:
        if not DatabaseUtils.exists(self.db, Staff, id=staff_id):
            raise ActiveError(ErrorKind.STAFF_NOT_FOUND, op, f"staff {staff_id}")

    def _require_running_group(self, group_id: int, op: str, now: datetime) -> ActiveGroup:
        group = DatabaseUtils.get_by_id_or_raise(
            self.db, ActiveGroup, group_id, ErrorKind.ACTIVE_GROUP_NOT_FOUND, op, for_update=True
        )
        if not group.is_active(now):
            raise ActiveError(ErrorKind.ACTIVE_GROUP_ALREADY_ENDED, op)
        return group

    def _active_pair_exists(self, staff_id: int, group_id: int) -> bool:
        return DatabaseUtils.exists(self.db, GroupSupervisor, staff_id=staff_id, group_id=group_id, end_date=None)

    def _bump_version(self, group_id: int, seen: Optional[int] = None) -> int:
        """
        Increment the session's supervision version. With `seen`, only when
        it still holds that value; returns the number of rows changed.
        """
        query = self.db.query(ActiveGroup).filter(ActiveGroup.id == group_id)
        if seen is not None:
            query = query.filter(ActiveGroup.supervision_version == seen)
        return query.update(
            {ActiveGroup.supervision_version: ActiveGroup.supervision_version + 1},
            synchronize_session=False,
        )

    # ------------------------------------------
    # Lifecycle
    # ------------------------------------------
    def assign(
        self,
        staff_id: int,
        active_group_id: int,
        role: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        *,
        now: datetime,
    ) -> GroupSupervisor:
        op = "CreateGroupSupervisor"
        start_date = start_date or now
        validate_time_range(op, start_date, end_date)
        self._require_running_group(active_group_id, op, now)
        self._require_staff(staff_id, op)

        if self._active_pair_exists(staff_id, active_group_id):
            raise ActiveError(ErrorKind.STAFF_ALREADY_SUPERVISING, op)

        supervision = GroupSupervisor(
            staff_id=staff_id,
            group_id=active_group_id,
            role=role or DEFAULT_ROLE,
            start_date=start_date,
            end_date=end_date,
        )
        self.db.add(supervision)
        self._bump_version(active_group_id)
        self._commit(op)
        self.db.refresh(supervision)

        logger.info("Staff %s assigned to active group %s as %s", staff_id, active_group_id, supervision.role)
        return supervision

    def claim(
        self,
        active_group_id: int,
        staff_id: int,
        role: str = DEFAULT_ROLE,
        *,
        now: datetime,
    ) -> GroupSupervisor:
        """
        Take over a running session nobody supervises. Of several staff
        claiming the same session at once exactly one succeeds.
        """
        op = "ClaimActiveGroup"
        self._require_staff(staff_id, op)
        group = self._require_running_group(active_group_id, op, now)
        seen = group.supervision_version

        if DatabaseUtils.exists(self.db, GroupSupervisor, group_id=active_group_id, end_date=None):
            self.db.rollback()
            raise ActiveError(ErrorKind.STAFF_ALREADY_SUPERVISING, op, "group is already supervised")

        # compare and swap on the version read above
        if self._bump_version(active_group_id, seen=seen) == 0:
            self.db.rollback()
            raise ActiveError(ErrorKind.STAFF_ALREADY_SUPERVISING, op, "group was claimed concurrently")

        supervision = GroupSupervisor(
            staff_id=staff_id,
            group_id=active_group_id,
            role=role or DEFAULT_ROLE,
            start_date=now,
        )
        self.db.add(supervision)
        self._commit(op)
        self.db.refresh(supervision)

        logger.info("Staff %s claimed active group %s", staff_id, active_group_id)
        emit(group_claimed, self, active_group_id=active_group_id, staff_id=staff_id)
        return supervision

    def end(self, supervision_id: int, *, now: datetime) -> GroupSupervisor:
        op = "EndSupervision"
        supervision = self.get(supervision_id, op)
        if not supervision.is_active():
            raise ActiveError(ErrorKind.SUPERVISION_ALREADY_ENDED, op)

        updated = (
            self.db.query(GroupSupervisor)
            .filter(GroupSupervisor.id == supervision_id, GroupSupervisor.end_date.is_(None))
            .update({GroupSupervisor.end_date: now, GroupSupervisor.updated_at: now}, synchronize_session=False)
        )
        if updated == 0:
            self.db.rollback()
            raise ActiveError(ErrorKind.SUPERVISION_ALREADY_ENDED, op)
        self._bump_version(supervision.group_id)
        self._commit(op)
        self.db.refresh(supervision)

        logger.info("Supervision %s of staff %s ended", supervision_id, supervision.staff_id)
        return supervision

    def update(self, supervision_id: int, data: Dict[str, Any]) -> GroupSupervisor:
        op = "UpdateGroupSupervisor"
        supervision = self.get(supervision_id, op)
        start_date = data.get("start_date") or supervision.start_date
        end_date = data["end_date"] if "end_date" in data else supervision.end_date
        validate_time_range(op, start_date, end_date)

        if data.get("role"):
            supervision.role = data["role"]
        supervision.start_date = start_date
        if end_date != supervision.end_date:
            supervision.end_date = end_date
            self._bump_version(supervision.group_id)
        self._commit(op)
        self.db.refresh(supervision)
        return supervision

    def delete(self, supervision_id: int) -> None:
        op = "DeleteGroupSupervisor"
        supervision = self.get(supervision_id, op)
        group_id = supervision.group_id
        self.db.delete(supervision)
        self._bump_version(group_id)
        self._commit(op)

    # ------------------------------------------
    # Queries
    # ------------------------------------------
    def get_active_for_staff(self, staff_id: int) -> List[GroupSupervisor]:
        return (
            self.db.query(GroupSupervisor)
            .filter(GroupSupervisor.staff_id == staff_id, GroupSupervisor.end_date.is_(None))
            .order_by(GroupSupervisor.start_date.desc())
            .all()
        )

    def list_for_staff(self, staff_id: int) -> List[GroupSupervisor]:
        return (
            self.db.query(GroupSupervisor)
            .filter(GroupSupervisor.staff_id == staff_id)
            .order_by(GroupSupervisor.start_date.desc())
            .all()
        )

    def list_for_group(self, active_group_id: int, active_only: bool = False) -> List[GroupSupervisor]:
        query = self.db.query(GroupSupervisor).filter(GroupSupervisor.group_id == active_group_id)
        if active_only:
            query = query.filter(GroupSupervisor.end_date.is_(None))
        return query.order_by(GroupSupervisor.start_date.asc()).all()

    def list(
        self,
        *,
        active: Optional[bool] = None,
        staff_id: Optional[int] = None,
        active_group_id: Optional[int] = None,
        params: QueryParams = DEFAULT_PARAMS,
    ) -> List[GroupSupervisor]:
        query = self.db.query(GroupSupervisor)
        if active is True:
            query = query.filter(GroupSupervisor.end_date.is_(None))
        elif active is False:
            query = query.filter(GroupSupervisor.end_date.isnot(None))
        if staff_id is not None:
            query = query.filter(GroupSupervisor.staff_id == staff_id)
        if active_group_id is not None:
            query = query.filter(GroupSupervisor.group_id == active_group_id)
        return params.apply(query, GroupSupervisor).all()

    def can_view_group(self, staff_id: int, active_group_id: int) -> bool:
        """Whether the staff member currently supervises the session."""
        return self._active_pair_exists(staff_id, active_group_id)
