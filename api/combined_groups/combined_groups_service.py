# api/combined_groups/combined_groups_service.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.active_groups.active_groups_model import ActiveGroup
from api.active_groups.active_groups_service import still_active, validate_time_range
from api.combined_groups.combined_groups_model import CombinedGroup
from api.combined_groups.group_mappings_model import GroupMapping
from utils.database_utils import DatabaseUtils
from utils.errors import ActiveError, ErrorKind, database_error, is_unique_violation
from utils.query_params import DEFAULT_PARAMS, QueryParams

logger = logging.getLogger(__name__)


class CombinedGroupService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, combined_id: int, op: str = "GetCombinedGroup", for_update: bool = False) -> CombinedGroup:
        return DatabaseUtils.get_by_id_or_raise(
            self.db, CombinedGroup, combined_id, ErrorKind.COMBINED_GROUP_NOT_FOUND, op, for_update=for_update
        )

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
    def create(self, start_time: datetime, end_time: Optional[datetime] = None) -> CombinedGroup:
        op = "CreateCombinedGroup"
        validate_time_range(op, start_time, end_time)
        combined = CombinedGroup(start_time=start_time, end_time=end_time)
        self.db.add(combined)
        self._commit(op, ErrorKind.INVALID_DATA)
        self.db.refresh(combined)
        logger.info("Combined group %s created", combined.id)
        return combined

    def update(self, combined_id: int, data: Dict[str, Any]) -> CombinedGroup:
        op = "UpdateCombinedGroup"
        combined = self.get(combined_id, op)
        start_time = data.get("start_time") or combined.start_time
        end_time = data["end_time"] if "end_time" in data else combined.end_time
        validate_time_range(op, start_time, end_time)
        combined.start_time = start_time
        combined.end_time = end_time
        self._commit(op, ErrorKind.INVALID_DATA)
        self.db.refresh(combined)
        return combined

    def end(self, combined_id: int, *, now: datetime) -> CombinedGroup:
        op = "EndCombinedGroup"
        combined = self.get(combined_id, op)
        if not combined.is_active(now):
            raise ActiveError(ErrorKind.COMBINED_GROUP_ALREADY_ENDED, op)

        updated = (
            self.db.query(CombinedGroup)
            .filter(CombinedGroup.id == combined_id)
            .filter(still_active(CombinedGroup.end_time, now))
            .update({CombinedGroup.end_time: now, CombinedGroup.updated_at: now}, synchronize_session=False)
        )
        if updated == 0:
            self.db.rollback()
            raise ActiveError(ErrorKind.COMBINED_GROUP_ALREADY_ENDED, op)
        self._commit(op, ErrorKind.COMBINED_GROUP_ALREADY_ENDED)
        self.db.refresh(combined)
        logger.info("Combined group %s ended", combined_id)
        return combined

    def delete(self, combined_id: int) -> None:
        op = "DeleteCombinedGroup"
        combined = self.get(combined_id, op)
        # mappings go with it (relationship cascade + ON DELETE CASCADE)
        self.db.delete(combined)
        self._commit(op, ErrorKind.INVALID_DATA)
        logger.info("Combined group %s deleted", combined_id)

    # ------------------------------------------
    # Membership
    # ------------------------------------------
    def _active_memberships(self, active_group_id: int, now: datetime):
        return (
            self.db.query(GroupMapping)
            .join(CombinedGroup, CombinedGroup.id == GroupMapping.active_combined_group_id)
            .filter(GroupMapping.active_group_id == active_group_id)
            .filter(still_active(CombinedGroup.end_time, now))
        )

    def add_group(self, combined_id: int, active_group_id: int, *, now: datetime) -> GroupMapping:
        op = "AddGroupToCombination"
        combined = self.get(combined_id, op, for_update=True)
        if not combined.is_active(now):
            raise ActiveError(ErrorKind.COMBINED_GROUP_ALREADY_ENDED, op)
        DatabaseUtils.get_by_id_or_raise(
            self.db, ActiveGroup, active_group_id, ErrorKind.ACTIVE_GROUP_NOT_FOUND, op, for_update=True
        )

        if self._active_memberships(active_group_id, now).first() is not None:
            self.db.rollback()
            raise ActiveError(ErrorKind.GROUP_ALREADY_IN_COMBINATION, op)

        mapping = GroupMapping(active_group_id=active_group_id, active_combined_group_id=combined_id)
        self.db.add(mapping)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            if is_unique_violation(exc):
                raise ActiveError(ErrorKind.GROUP_ALREADY_IN_COMBINATION, op)
            raise database_error(op, exc)

        # re-check inside the write transaction; a concurrent add to another
        # combined group shows up here once writes are serialised
        if self._active_memberships(active_group_id, now).count() > 1:
            self.db.rollback()
            raise ActiveError(ErrorKind.GROUP_ALREADY_IN_COMBINATION, op)

        self._commit(op, ErrorKind.GROUP_ALREADY_IN_COMBINATION)
        self.db.refresh(mapping)
        logger.info("Active group %s added to combined group %s", active_group_id, combined_id)
        return mapping

    def remove_group(self, combined_id: int, active_group_id: int) -> None:
        op = "RemoveGroupFromCombination"
        self.get(combined_id, op)
        mapping = (
            self.db.query(GroupMapping)
            .filter(
                GroupMapping.active_combined_group_id == combined_id,
                GroupMapping.active_group_id == active_group_id,
            )
            .first()
        )
        if mapping is None:
            raise ActiveError(ErrorKind.GROUP_MAPPING_NOT_FOUND, op)
        self.db.delete(mapping)
        self._commit(op, ErrorKind.INVALID_DATA)
        logger.info("Active group %s removed from combined group %s", active_group_id, combined_id)

    def create_with_groups(
        self,
        start_time: datetime,
        end_time: Optional[datetime],
        group_ids: List[int],
        *,
        now: datetime,
    ) -> Tuple[CombinedGroup, List[Dict[str, Any]]]:
        """
        Create the combined group, then add each member in its own
        transaction. A member that cannot be added is reported in the
        per-item results and never undoes the combined group.
        """
        combined = self.create(start_time, end_time)
        results = []
        for active_group_id in group_ids:
            try:
                self.add_group(combined.id, active_group_id, now=now)
                results.append({"active_group_id": active_group_id, "added": True, "error": None})
            except ActiveError as exc:
                self.db.rollback()
                logger.warning("Could not add active group %s to combined group %s: %s", active_group_id, combined.id, exc)
                results.append({"active_group_id": active_group_id, "added": False, "error": exc.kind.value})
        return combined, results

    # ------------------------------------------
    # Queries
    # ------------------------------------------
    def list(
        self,
        *,
        now: datetime,
        active: Optional[bool] = None,
        params: QueryParams = DEFAULT_PARAMS,
    ) -> List[CombinedGroup]:
        query = self.db.query(CombinedGroup)
        if active is True:
            query = query.filter(still_active(CombinedGroup.end_time, now))
        elif active is False:
            query = query.filter(CombinedGroup.end_time.isnot(None), CombinedGroup.end_time <= now)
        return params.apply(query, CombinedGroup).all()

    def list_active(self, *, now: datetime) -> List[CombinedGroup]:
        return (
            self.db.query(CombinedGroup)
            .filter(still_active(CombinedGroup.end_time, now))
            .order_by(CombinedGroup.start_time.desc())
            .all()
        )

    def get_mappings(self, combined_id: int) -> List[GroupMapping]:
        self.get(combined_id, "GetGroupMappings")
        return (
            self.db.query(GroupMapping)
            .filter(GroupMapping.active_combined_group_id == combined_id)
            .order_by(GroupMapping.id.asc())
            .all()
        )

    def get_groups(self, combined_id: int) -> List[ActiveGroup]:
        self.get(combined_id, "GetCombinedGroupGroups")
        return (
            self.db.query(ActiveGroup)
            .join(GroupMapping, GroupMapping.active_group_id == ActiveGroup.id)
            .filter(GroupMapping.active_combined_group_id == combined_id)
            .order_by(ActiveGroup.id.asc())
            .all()
        )

    def group_counts(self, combined_ids: List[int]) -> Dict[int, int]:
        counts = {cid: 0 for cid in combined_ids}
        if not combined_ids:
            return counts
        rows = (
            self.db.query(GroupMapping.active_combined_group_id, func.count(GroupMapping.id))
            .filter(GroupMapping.active_combined_group_id.in_(combined_ids))
            .group_by(GroupMapping.active_combined_group_id)
            .all()
        )
        for cid, count in rows:
            counts[cid] = count
        return counts
