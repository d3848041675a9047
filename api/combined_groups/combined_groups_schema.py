# api/combined_groups/combined_groups_schema.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from utils.schema_types import UTCTimestamp


class CombinedGroupCreate(BaseModel):
    start_time: UTCTimestamp
    end_time: Optional[UTCTimestamp] = None
    group_ids: List[int] = []


class CombinedGroupUpdate(BaseModel):
    start_time: Optional[UTCTimestamp] = None
    end_time: Optional[UTCTimestamp] = None


class AddGroupRequest(BaseModel):
    active_group_id: int = Field(gt=0)


class CombinedGroupOut(BaseModel):
    id: int
    name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    is_active: bool
    group_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class MembershipResult(BaseModel):
    active_group_id: int
    added: bool
    error: Optional[str] = None


class CombinedGroupCreatedOut(CombinedGroupOut):
    membership_results: List[MembershipResult] = []


class GroupMappingOut(BaseModel):
    id: int
    active_group_id: int
    combined_group_id: int
    group_name: Optional[str] = None
    combined_name: Optional[str] = None
