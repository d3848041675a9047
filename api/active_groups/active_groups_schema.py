# api/active_groups/active_groups_schema.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from utils.schema_types import UTCTimestamp

from api.visits.visits_schema import VisitOut


class ActiveGroupCreate(BaseModel):
    group_id: int = Field(gt=0)
    room_id: int = Field(gt=0)
    start_time: UTCTimestamp
    end_time: Optional[UTCTimestamp] = None


class ActiveGroupUpdate(BaseModel):
    group_id: Optional[int] = Field(default=None, gt=0)
    room_id: Optional[int] = Field(default=None, gt=0)
    start_time: Optional[UTCTimestamp] = None
    end_time: Optional[UTCTimestamp] = None


class RoomBrief(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class SupervisorBrief(BaseModel):
    id: int
    staff_id: int
    role: str
    staff_name: Optional[str] = None


class ActiveGroupOut(BaseModel):
    id: int
    group_id: int
    room_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    is_active: bool
    last_activity: Optional[datetime] = None
    name: Optional[str] = None
    activity_name: Optional[str] = None
    visit_count: Optional[int] = None
    supervisor_count: Optional[int] = None
    supervisors: Optional[List[SupervisorBrief]] = None
    room: Optional[RoomBrief] = None
    created_at: datetime
    updated_at: datetime


class ActiveGroupWithVisitsOut(ActiveGroupOut):
    visits: List[VisitOut] = []


class ClaimRequest(BaseModel):
    role: str = Field(default="supervisor", min_length=1, max_length=50)
