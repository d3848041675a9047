from datetime import datetime, timedelta
from typing import Any, Dict

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from api.active_groups.active_groups_model import ActiveGroup
from api.active_groups.active_groups_service import ActiveGroupService, still_active
from api.combined_groups.combined_groups_model import CombinedGroup
from api.rooms.rooms_model import Room
from api.students.students_model import Student
from api.supervisors.group_supervisors_model import GroupSupervisor
from api.visits.visits_model import Visit
from utils.database_utils import DatabaseUtils
from utils.errors import ActiveError, ErrorKind

# ─── Counts ─────────────────────────────────────────────────────────────────


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def get_counts(db: Session, now: datetime) -> Dict[str, int]:
    return {
        "active_groups_count": (
            db.query(ActiveGroup).filter(still_active(ActiveGroup.end_time, now)).count()
        ),
        "active_visits_count": db.query(Visit).filter(Visit.exit_time.is_(None)).count(),
        "visits_today_count": db.query(Visit).filter(Visit.entry_time >= start_of_day(now)).count(),
        "active_supervisors_count": (
            db.query(GroupSupervisor).filter(GroupSupervisor.end_date.is_(None)).count()
        ),
        "active_combined_groups_count": (
            db.query(CombinedGroup).filter(still_active(CombinedGroup.end_time, now)).count()
        ),
    }


# ─── Dashboard ──────────────────────────────────────────────────────────────


def get_dashboard(db: Session, now: datetime) -> Dict[str, Any]:
    """
    Snapshot of the building: who is present, which rooms are used and
    which running groups still need a supervisor. Open visits whose group
    has already ended are reported as stale and not counted as present.
    """
    running = still_active(ActiveGroup.end_time, now)

    students_present = (
        db.query(func.count(func.distinct(Visit.student_id)))
        .join(ActiveGroup, ActiveGroup.id == Visit.active_group_id)
        .filter(Visit.exit_time.is_(None), running)
        .scalar()
    ) or 0
    stale_visits = (
        db.query(Visit)
        .join(ActiveGroup, ActiveGroup.id == Visit.active_group_id)
        .filter(Visit.exit_time.is_(None), ~running)
        .count()
    )
    active_activities = db.query(ActiveGroup).filter(running).count()
    occupied_rooms = (
        db.query(func.count(func.distinct(ActiveGroup.room_id))).filter(running).scalar()
    ) or 0
    total_rooms = db.query(Room).count()
    total_capacity = db.query(func.coalesce(func.sum(Room.capacity), 0)).scalar() or 0
    # staff who supervised at some point today, including those still on duty
    supervisors_today = (
        db.query(func.count(func.distinct(GroupSupervisor.staff_id)))
        .filter(or_(GroupSupervisor.end_date.is_(None), GroupSupervisor.end_date >= start_of_day(now)))
        .scalar()
    ) or 0
    unclaimed = len(ActiveGroupService(db).list_unclaimed(now=now))

    return {
        "students_present": students_present,
        "active_activities": active_activities,
        "total_rooms": total_rooms,
        "occupied_rooms": occupied_rooms,
        "free_rooms": max(total_rooms - occupied_rooms, 0),
        "total_capacity": int(total_capacity),
        "capacity_utilization": round(students_present / total_capacity, 4) if total_capacity else 0.0,
        "supervisors_today": supervisors_today,
        "unclaimed_groups": unclaimed,
        "stale_visits": stale_visits,
        "last_updated": now,
    }


# ─── Rooms & students ───────────────────────────────────────────────────────


def get_room_utilization(db: Session, room_id: int, now: datetime) -> Dict[str, Any]:
    room = DatabaseUtils.get_by_id_or_raise(db, Room, room_id, ErrorKind.ROOM_NOT_FOUND, "GetRoomUtilization")
    group_ids = [
        gid for (gid,) in db.query(ActiveGroup.id)
        .filter(ActiveGroup.room_id == room_id, still_active(ActiveGroup.end_time, now))
        .all()
    ]
    occupancy = 0
    if group_ids:
        occupancy = (
            db.query(Visit)
            .filter(Visit.active_group_id.in_(group_ids), Visit.exit_time.is_(None))
            .count()
        )
    return {
        "room_id": room.id,
        "room_name": room.name,
        "capacity": room.capacity,
        "current_occupancy": occupancy,
        "active_group_ids": group_ids,
        "utilization": round(occupancy / room.capacity, 4) if room.capacity else None,
    }


def get_student_attendance(db: Session, student_id: int, days: int, now: datetime) -> Dict[str, Any]:
    """Share of the last `days` days on which the student had at least one visit."""
    if days <= 0:
        raise ActiveError(ErrorKind.INVALID_DATA, "GetStudentAttendance", "days must be positive")
    student = DatabaseUtils.get_by_id_or_raise(
        db, Student, student_id, ErrorKind.STUDENT_NOT_FOUND, "GetStudentAttendance"
    )
    window_start = start_of_day(now) - timedelta(days=days - 1)
    entries = [
        entry for (entry,) in db.query(Visit.entry_time)
        .filter(Visit.student_id == student_id, Visit.entry_time >= window_start, Visit.entry_time <= now)
        .all()
    ]
    days_present = len({entry.date() for entry in entries})
    return {
        "student_id": student.id,
        "student_name": student.full_name,
        "days": days,
        "days_present": days_present,
        "total_visits": len(entries),
        "attendance_rate": round(days_present / days, 4),
    }
