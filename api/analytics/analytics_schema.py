# api/analytics/analytics_schema.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CountsOut(BaseModel):
    active_groups_count: int
    active_visits_count: int
    visits_today_count: int
    active_supervisors_count: int
    active_combined_groups_count: int


class DashboardOut(BaseModel):
    students_present: int
    active_activities: int
    total_rooms: int
    occupied_rooms: int
    free_rooms: int
    total_capacity: int
    capacity_utilization: float
    supervisors_today: int
    unclaimed_groups: int
    stale_visits: int
    last_updated: datetime


class RoomUtilizationOut(BaseModel):
    room_id: int
    room_name: str
    capacity: Optional[int] = None
    current_occupancy: int
    active_group_ids: list[int] = []
    utilization: Optional[float] = None


class StudentAttendanceOut(BaseModel):
    student_id: int
    student_name: str
    days: int
    days_present: int
    total_visits: int
    attendance_rate: float
