# api/active_groups/active_groups_controller.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.active_groups.active_groups_model import ActiveGroup
from api.active_groups.active_groups_schema import (
    ActiveGroupCreate,
    ActiveGroupOut,
    ActiveGroupUpdate,
    ActiveGroupWithVisitsOut,
    RoomBrief,
    SupervisorBrief,
)
from api.active_groups.active_groups_service import ActiveGroupService
from api.staff.staff_model import Staff
from api.supervisors.group_supervisors_model import GroupSupervisor
from api.supervisors.supervisors_schema import SupervisorOut
from api.supervisors.supervisors_controller import SupervisorController
from api.supervisors.supervisors_service import SupervisorService
from api.visits.visits_controller import VisitController
from middlewares.role_middleware import is_admin
from utils.database_utils import utc_now
from utils.errors import ActiveError, ErrorKind
from utils.query_params import QueryParams

logger = logging.getLogger(__name__)


class ActiveGroupController:
    @staticmethod
    def to_out(
        group: ActiveGroup,
        now: datetime,
        stats: Optional[Dict[str, int]] = None,
        supervisors: Optional[List[GroupSupervisor]] = None,
    ) -> ActiveGroupOut:
        data: Dict[str, Any] = {
            "id": group.id,
            "group_id": group.group_id,
            "room_id": group.room_id,
            "start_time": group.start_time,
            "end_time": group.end_time,
            "is_active": group.is_active(now),
            "last_activity": group.last_activity,
            "name": group.display_name,
            "created_at": group.created_at,
            "updated_at": group.updated_at,
        }
        if stats is not None:
            data.update(stats)
        if supervisors is not None:
            data["supervisors"] = [
                SupervisorBrief(
                    id=s.id,
                    staff_id=s.staff_id,
                    role=s.role,
                    staff_name=s.staff.full_name if s.staff else None,
                )
                for s in supervisors
            ]
        if group.room is not None:
            data["room"] = RoomBrief.model_validate(group.room)
        if group.activity is not None:
            data["activity_name"] = group.activity.name
        return ActiveGroupOut.model_validate(data)

    @staticmethod
    def _full_out(db: Session, group: ActiveGroup, now: datetime) -> ActiveGroupOut:
        """Entity with counts and relations; falls back to the bare entity."""
        svc = ActiveGroupService(db)
        try:
            stats = svc.counts_for([group.id])[group.id]
            return ActiveGroupController.to_out(group, now, stats=stats)
        except SQLAlchemyError:
            logger.warning("Could not load relations for active group %s", group.id, exc_info=True)
            db.rollback()
            return ActiveGroupOut.model_validate({
                "id": group.id,
                "group_id": group.group_id,
                "room_id": group.room_id,
                "start_time": group.start_time,
                "end_time": group.end_time,
                "is_active": group.is_active(now),
                "created_at": group.created_at,
                "updated_at": group.updated_at,
            })

    @staticmethod
    def list_groups(
        db: Session,
        active: Optional[bool],
        room_id: Optional[int],
        group_id: Optional[int],
        params: QueryParams,
    ) -> List[ActiveGroupOut]:
        now = utc_now()
        svc = ActiveGroupService(db)
        groups = svc.list(now=now, active=active, room_id=room_id, group_id=group_id, params=params)
        stats = svc.counts_for([g.id for g in groups])
        return [ActiveGroupController.to_out(g, now, stats=stats[g.id]) for g in groups]

    @staticmethod
    def get_group(group_id: int, db: Session) -> ActiveGroupOut:
        now = utc_now()
        group = ActiveGroupService(db).get(group_id)
        return ActiveGroupController._full_out(db, group, now)

    @staticmethod
    def create_group(payload: ActiveGroupCreate, db: Session) -> ActiveGroupOut:
        now = utc_now()
        group = ActiveGroupService(db).create(
            payload.group_id, payload.room_id, payload.start_time, payload.end_time, now=now
        )
        return ActiveGroupController._full_out(db, group, now)

    @staticmethod
    def update_group(group_id: int, payload: ActiveGroupUpdate, db: Session) -> ActiveGroupOut:
        now = utc_now()
        group = ActiveGroupService(db).update(group_id, payload.model_dump(exclude_unset=True), now=now)
        return ActiveGroupController._full_out(db, group, now)

    @staticmethod
    def end_group(group_id: int, db: Session, cascade: bool = False) -> ActiveGroupOut:
        now = utc_now()
        group = ActiveGroupService(db).end(group_id, now=now, cascade=cascade)
        return ActiveGroupController._full_out(db, group, now)

    @staticmethod
    def delete_group(group_id: int, db: Session) -> None:
        ActiveGroupService(db).delete(group_id)

    @staticmethod
    def group_with_visits(group_id: int, db: Session) -> ActiveGroupWithVisitsOut:
        now = utc_now()
        group, visits = ActiveGroupService(db).get_with_visits(group_id)
        base = ActiveGroupController._full_out(db, group, now).model_dump()
        base["visits"] = [VisitController.to_out(v, now) for v in visits]
        return ActiveGroupWithVisitsOut.model_validate(base)

    @staticmethod
    def group_with_supervisors(group_id: int, db: Session) -> ActiveGroupOut:
        now = utc_now()
        svc = ActiveGroupService(db)
        group, supervisors = svc.get_with_supervisors(group_id)
        stats = svc.counts_for([group.id])[group.id]
        return ActiveGroupController.to_out(group, now, stats=stats, supervisors=supervisors)

    @staticmethod
    def list_unclaimed(db: Session) -> List[ActiveGroupOut]:
        now = utc_now()
        svc = ActiveGroupService(db)
        groups = svc.list_unclaimed(now=now)
        stats = svc.counts_for([g.id for g in groups])
        return [ActiveGroupController.to_out(g, now, stats=stats[g.id]) for g in groups]

    @staticmethod
    def claim_group(group_id: int, staff: Staff, role: str, db: Session) -> SupervisorOut:
        supervision = SupervisorService(db).claim(group_id, staff.id, role=role, now=utc_now())
        return SupervisorController.to_out(supervision)

    @staticmethod
    def display_visits(group_id: int, user: Dict[str, Any], staff: Optional[Staff], db: Session):
        # supervisors of the session (and admins) may see who is in it
        if not is_admin(user):
            if staff is None or not SupervisorService(db).can_view_group(staff.id, group_id):
                ActiveGroupService(db).get(group_id, "GetVisitsWithDisplayData")
                raise ActiveError(ErrorKind.FORBIDDEN, "GetVisitsWithDisplayData", "not authorized to view this group")
        return VisitController.display_visits(group_id, db)
