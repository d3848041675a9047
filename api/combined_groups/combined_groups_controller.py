# api/combined_groups/combined_groups_controller.py

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.active_groups.active_groups_controller import ActiveGroupController
from api.active_groups.active_groups_schema import ActiveGroupOut
from api.combined_groups.combined_groups_model import CombinedGroup
from api.combined_groups.combined_groups_schema import (
    AddGroupRequest,
    CombinedGroupCreate,
    CombinedGroupCreatedOut,
    CombinedGroupOut,
    CombinedGroupUpdate,
    GroupMappingOut,
    MembershipResult,
)
from api.combined_groups.combined_groups_service import CombinedGroupService
from api.combined_groups.group_mappings_model import GroupMapping
from utils.database_utils import utc_now
from utils.query_params import QueryParams

logger = logging.getLogger(__name__)


class CombinedGroupController:
    @staticmethod
    def to_out(combined: CombinedGroup, now: datetime, group_count: Optional[int] = None) -> CombinedGroupOut:
        return CombinedGroupOut.model_validate({
            "id": combined.id,
            "name": combined.display_name,
            "start_time": combined.start_time,
            "end_time": combined.end_time,
            "is_active": combined.is_active(now),
            "group_count": group_count,
            "created_at": combined.created_at,
            "updated_at": combined.updated_at,
        })

    @staticmethod
    def mapping_out(mapping: GroupMapping) -> GroupMappingOut:
        group = mapping.active_group
        combined = mapping.combined_group
        return GroupMappingOut.model_validate({
            "id": mapping.id,
            "active_group_id": mapping.active_group_id,
            "combined_group_id": mapping.active_combined_group_id,
            "group_name": group.display_name if group else None,
            "combined_name": combined.display_name if combined else None,
        })

    @staticmethod
    def _with_count(db: Session, combined: CombinedGroup, now: datetime) -> CombinedGroupOut:
        try:
            count = CombinedGroupService(db).group_counts([combined.id])[combined.id]
        except SQLAlchemyError:
            logger.warning("Could not count members of combined group %s", combined.id, exc_info=True)
            db.rollback()
            count = None
        return CombinedGroupController.to_out(combined, now, count)

    @staticmethod
    def list_combined(db: Session, active: Optional[bool], params: QueryParams) -> List[CombinedGroupOut]:
        now = utc_now()
        svc = CombinedGroupService(db)
        rows = svc.list(now=now, active=active, params=params)
        counts = svc.group_counts([c.id for c in rows])
        return [CombinedGroupController.to_out(c, now, counts[c.id]) for c in rows]

    @staticmethod
    def list_active_combined(db: Session) -> List[CombinedGroupOut]:
        now = utc_now()
        svc = CombinedGroupService(db)
        rows = svc.list_active(now=now)
        counts = svc.group_counts([c.id for c in rows])
        return [CombinedGroupController.to_out(c, now, counts[c.id]) for c in rows]

    @staticmethod
    def get_combined(combined_id: int, db: Session) -> CombinedGroupOut:
        now = utc_now()
        return CombinedGroupController._with_count(db, CombinedGroupService(db).get(combined_id), now)

    @staticmethod
    def create_combined(payload: CombinedGroupCreate, db: Session) -> CombinedGroupCreatedOut:
        now = utc_now()
        combined, results = CombinedGroupService(db).create_with_groups(
            payload.start_time, payload.end_time, payload.group_ids, now=now
        )
        base = CombinedGroupController._with_count(db, combined, now).model_dump()
        base["membership_results"] = [MembershipResult.model_validate(r) for r in results]
        return CombinedGroupCreatedOut.model_validate(base)

    @staticmethod
    def update_combined(combined_id: int, payload: CombinedGroupUpdate, db: Session) -> CombinedGroupOut:
        now = utc_now()
        combined = CombinedGroupService(db).update(combined_id, payload.model_dump(exclude_unset=True))
        return CombinedGroupController._with_count(db, combined, now)

    @staticmethod
    def end_combined(combined_id: int, db: Session) -> CombinedGroupOut:
        now = utc_now()
        combined = CombinedGroupService(db).end(combined_id, now=now)
        return CombinedGroupController._with_count(db, combined, now)

    @staticmethod
    def delete_combined(combined_id: int, db: Session) -> None:
        CombinedGroupService(db).delete(combined_id)

    @staticmethod
    def list_mappings(combined_id: int, db: Session) -> List[GroupMappingOut]:
        return [CombinedGroupController.mapping_out(m) for m in CombinedGroupService(db).get_mappings(combined_id)]

    @staticmethod
    def add_group(combined_id: int, payload: AddGroupRequest, db: Session) -> GroupMappingOut:
        mapping = CombinedGroupService(db).add_group(combined_id, payload.active_group_id, now=utc_now())
        return CombinedGroupController.mapping_out(mapping)

    @staticmethod
    def remove_group(combined_id: int, active_group_id: int, db: Session) -> None:
        CombinedGroupService(db).remove_group(combined_id, active_group_id)

    @staticmethod
    def list_groups(combined_id: int, db: Session) -> List[ActiveGroupOut]:
        now = utc_now()
        return [ActiveGroupController.to_out(g, now) for g in CombinedGroupService(db).get_groups(combined_id)]
