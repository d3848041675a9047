# api/active_groups/active_groups_service.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.active_groups.active_groups_model import ActiveGroup
from api.activities.activities_model import ActivityGroup
from api.notifications.notifications_service import activity_ended, activity_started, emit
from api.rooms.rooms_model import Room
from api.supervisors.group_supervisors_model import GroupSupervisor
from api.visits.visits_model import Visit
from config.settings import settings
from utils.database_utils import DatabaseUtils
from utils.errors import ActiveError, ErrorKind, is_unique_violation, database_error
from utils.query_params import QueryParams, DEFAULT_PARAMS

logger = logging.getLogger(__name__)


def validate_time_range(op: str, start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and end < start:
        raise ActiveError(ErrorKind.INVALID_TIME_RANGE, op, "end before start")


def still_active(column, now: datetime):
    """SQL form of `end is None or end > now`."""
    return or_(column.is_(None), column > now)


class ActiveGroupService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------
    # Lookups
    # ------------------------------------------
    def get(self, group_id: int, op: str = "GetActiveGroup", for_update: bool = False) -> ActiveGroup:
        return DatabaseUtils.get_by_id_or_raise(
            self.db, ActiveGroup, group_id, ErrorKind.ACTIVE_GROUP_NOT_FOUND, op, for_update=for_update
        )

    def find_room_conflict(
        self,
        room_id: int,
        start_time: datetime,
        end_time: Optional[datetime],
        now: datetime,
        exclude_id: Optional[int] = None,
    ) -> Optional[ActiveGroup]:
        """
        Another session in the room that is still running at `now` and
        overlaps [start_time, end_time or open end).
        """
        query = (
            self.db.query(ActiveGroup)
            .filter(ActiveGroup.room_id == room_id)
            .filter(still_active(ActiveGroup.end_time, now))
            .filter(still_active(ActiveGroup.end_time, start_time))
        )
        if end_time is not None:
            query = query.filter(ActiveGroup.start_time < end_time)
        if exclude_id is not None:
            query = query.filter(ActiveGroup.id != exclude_id)
        return query.first()

    def _check_references(self, op: str, group_id: Optional[int], room_id: Optional[int]) -> None:
        if group_id is not None:
            if group_id <= 0 or not DatabaseUtils.exists(self.db, ActivityGroup, id=group_id):
                raise ActiveError(ErrorKind.INVALID_DATA, op, f"activity group {group_id} not found")
        if room_id is not None:
            if room_id <= 0:
                raise ActiveError(ErrorKind.INVALID_DATA, op, "room id must be positive")
            if not DatabaseUtils.exists(self.db, Room, id=room_id):
                raise ActiveError(ErrorKind.ROOM_NOT_FOUND, op, f"room {room_id}")

    def _commit(self, op: str, conflict_kind: ErrorKind) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if is_unique_violation(exc):
                raise ActiveError(conflict_kind, op)
            raise database_error(op, exc)

    # ------------------------------------------
    # Lifecycle
    # ------------------------------------------
    def create(
        self,
        group_id: int,
        room_id: int,
        start_time: datetime,
        end_time: Optional[datetime] = None,
        *,
        now: datetime,
    ) -> ActiveGroup:
        op = "CreateActiveGroup"
        validate_time_range(op, start_time, end_time)
        self._check_references(op, group_id, room_id)

        conflict = self.find_room_conflict(room_id, start_time, end_time, now)
        if conflict is not None:
            raise ActiveError(ErrorKind.ROOM_CONFLICT, op, f"room {room_id} is used by active group {conflict.id}")

        group = ActiveGroup(
            group_id=group_id,
            room_id=room_id,
            start_time=start_time,
            end_time=end_time,
            last_activity=now,
        )
        self.db.add(group)
        self._commit(op, ErrorKind.ROOM_CONFLICT)
        self.db.refresh(group)

        logger.info("Active group %s started in room %s", group.id, room_id)
        emit(activity_started, self, active_group_id=group.id, room_id=room_id)
        return group

    def update(self, group_id: int, data: Dict[str, Any], *, now: datetime) -> ActiveGroup:
        op = "UpdateActiveGroup"
        group = self.get(group_id, op)

        new_group_id = data.get("group_id", group.group_id)
        new_room_id = data.get("room_id", group.room_id)
        new_start = data.get("start_time", group.start_time)
        new_end = data["end_time"] if "end_time" in data else group.end_time
        if new_start is None:
            raise ActiveError(ErrorKind.INVALID_DATA, op, "start_time is required")

        validate_time_range(op, new_start, new_end)
        self._check_references(
            op,
            new_group_id if new_group_id != group.group_id else None,
            new_room_id if new_room_id != group.room_id else None,
        )

        conflict = self.find_room_conflict(new_room_id, new_start, new_end, now, exclude_id=group.id)
        if conflict is not None:
            raise ActiveError(ErrorKind.ROOM_CONFLICT, op, f"room {new_room_id} is used by active group {conflict.id}")

        group.group_id = new_group_id
        group.room_id = new_room_id
        group.start_time = new_start
        group.end_time = new_end
        self._commit(op, ErrorKind.ROOM_CONFLICT)
        self.db.refresh(group)
        return group

    def end(self, group_id: int, *, now: datetime, cascade: bool = False) -> ActiveGroup:
        op = "EndActiveGroup"
        group = self.get(group_id, op)
        if not group.is_active(now):
            raise ActiveError(ErrorKind.ACTIVE_GROUP_ALREADY_ENDED, op)

        # conditional update keeps the first end time when two ends race
        updated = (
            self.db.query(ActiveGroup)
            .filter(ActiveGroup.id == group_id)
            .filter(still_active(ActiveGroup.end_time, now))
            .update(
                {ActiveGroup.end_time: now, ActiveGroup.updated_at: now},
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.db.rollback()
            raise ActiveError(ErrorKind.ACTIVE_GROUP_ALREADY_ENDED, op)

        closed_visits = ended_supervisions = 0
        if cascade:
            closed_visits = (
                self.db.query(Visit)
                .filter(Visit.active_group_id == group_id, Visit.exit_time.is_(None))
                .update({Visit.exit_time: now, Visit.updated_at: now}, synchronize_session=False)
            )
            ended_supervisions = (
                self.db.query(GroupSupervisor)
                .filter(GroupSupervisor.group_id == group_id, GroupSupervisor.end_date.is_(None))
                .update({GroupSupervisor.end_date: now, GroupSupervisor.updated_at: now}, synchronize_session=False)
            )
            if ended_supervisions:
                self.db.query(ActiveGroup).filter(ActiveGroup.id == group_id).update(
                    {ActiveGroup.supervision_version: ActiveGroup.supervision_version + 1},
                    synchronize_session=False,
                )

        self._commit(op, ErrorKind.ACTIVE_GROUP_ALREADY_ENDED)
        self.db.refresh(group)

        logger.info(
            "Active group %s ended (cascade=%s, visits closed=%s, supervisions ended=%s)",
            group_id, cascade, closed_visits, ended_supervisions,
        )
        emit(activity_ended, self, active_group_id=group_id, cascade=cascade)
        return group

    def delete(self, group_id: int) -> None:
        op = "DeleteActiveGroup"
        group = self.get(group_id, op)
        if DatabaseUtils.exists(self.db, Visit, active_group_id=group_id, exit_time=None):
            raise ActiveError(ErrorKind.CANNOT_DELETE_ACTIVE_GROUP, op)

        self.db.delete(group)
        self._commit(op, ErrorKind.CANNOT_DELETE_ACTIVE_GROUP)
        logger.info("Active group %s deleted", group_id)

    # ------------------------------------------
    # Queries
    # ------------------------------------------
    def get_with_visits(self, group_id: int) -> Tuple[ActiveGroup, List[Visit]]:
        group = self.get(group_id, "GetActiveGroupWithVisits")
        visits = (
            self.db.query(Visit)
            .filter(Visit.active_group_id == group_id)
            .order_by(Visit.entry_time.desc())
            .all()
        )
        return group, visits

    def get_with_supervisors(self, group_id: int) -> Tuple[ActiveGroup, List[GroupSupervisor]]:
        group = self.get(group_id, "GetActiveGroupWithSupervisors")
        supervisors = (
            self.db.query(GroupSupervisor)
            .filter(GroupSupervisor.group_id == group_id, GroupSupervisor.end_date.is_(None))
            .order_by(GroupSupervisor.start_date.asc())
            .all()
        )
        return group, supervisors

    def list(
        self,
        *,
        now: datetime,
        active: Optional[bool] = None,
        room_id: Optional[int] = None,
        group_id: Optional[int] = None,
        params: QueryParams = DEFAULT_PARAMS,
    ) -> List[ActiveGroup]:
        query = self.db.query(ActiveGroup)
        if active is True:
            query = query.filter(still_active(ActiveGroup.end_time, now))
        elif active is False:
            query = query.filter(ActiveGroup.end_time.isnot(None), ActiveGroup.end_time <= now)
        if room_id is not None:
            query = query.filter(ActiveGroup.room_id == room_id)
        if group_id is not None:
            query = query.filter(ActiveGroup.group_id == group_id)
        return params.apply(query, ActiveGroup).all()

    def list_unclaimed(self, *, now: datetime) -> List[ActiveGroup]:
        """Running sessions that nobody supervises, newest first."""
        query = (
            self.db.query(ActiveGroup)
            .outerjoin(
                GroupSupervisor,
                and_(GroupSupervisor.group_id == ActiveGroup.id, GroupSupervisor.end_date.is_(None)),
            )
            .filter(still_active(ActiveGroup.end_time, now))
            .filter(GroupSupervisor.id.is_(None))
        )
        room_names = settings.deviceless_room_names_list
        if room_names:
            query = query.join(Room, Room.id == ActiveGroup.room_id).filter(Room.name.in_(room_names))
        return query.order_by(ActiveGroup.start_time.desc(), ActiveGroup.id.desc()).all()

    def counts_for(self, group_ids: List[int]) -> Dict[int, Dict[str, int]]:
        """Open visit and active supervisor counts per session, two queries total."""
        stats = {gid: {"visit_count": 0, "supervisor_count": 0} for gid in group_ids}
        if not group_ids:
            return stats
        visit_rows = (
            self.db.query(Visit.active_group_id, func.count(Visit.id))
            .filter(Visit.active_group_id.in_(group_ids), Visit.exit_time.is_(None))
            .group_by(Visit.active_group_id)
            .all()
        )
        for gid, count in visit_rows:
            stats[gid]["visit_count"] = count
        supervisor_rows = (
            self.db.query(GroupSupervisor.group_id, func.count(GroupSupervisor.id))
            .filter(GroupSupervisor.group_id.in_(group_ids), GroupSupervisor.end_date.is_(None))
            .group_by(GroupSupervisor.group_id)
            .all()
        )
        for gid, count in supervisor_rows:
            stats[gid]["supervisor_count"] = count
        return stats
