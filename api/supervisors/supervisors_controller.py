# api/supervisors/supervisors_controller.py

from typing import List, Optional

from sqlalchemy.orm import Session

from api.supervisors.group_supervisors_model import GroupSupervisor
from api.supervisors.supervisors_schema import SupervisorCreate, SupervisorOut, SupervisorUpdate
from api.supervisors.supervisors_service import SupervisorService
from utils.database_utils import utc_now
from utils.query_params import QueryParams


class SupervisorController:
    @staticmethod
    def to_out(supervision: GroupSupervisor) -> SupervisorOut:
        staff = supervision.staff
        group = supervision.active_group
        return SupervisorOut.model_validate({
            "id": supervision.id,
            "staff_id": supervision.staff_id,
            "active_group_id": supervision.group_id,
            "role": supervision.role,
            "start_date": supervision.start_date,
            "end_date": supervision.end_date,
            "is_active": supervision.is_active(),
            "staff_name": staff.full_name if staff else None,
            "active_group_name": group.display_name if group else None,
            "created_at": supervision.created_at,
            "updated_at": supervision.updated_at,
        })

    @staticmethod
    def list_supervisors(
        db: Session,
        active: Optional[bool],
        staff_id: Optional[int],
        active_group_id: Optional[int],
        params: QueryParams,
    ) -> List[SupervisorOut]:
        rows = SupervisorService(db).list(
            active=active, staff_id=staff_id, active_group_id=active_group_id, params=params
        )
        return [SupervisorController.to_out(s) for s in rows]

    @staticmethod
    def get_supervisor(supervision_id: int, db: Session) -> SupervisorOut:
        return SupervisorController.to_out(SupervisorService(db).get(supervision_id))

    @staticmethod
    def create_supervisor(payload: SupervisorCreate, db: Session) -> SupervisorOut:
        supervision = SupervisorService(db).assign(
            payload.staff_id,
            payload.active_group_id,
            role=payload.role,
            start_date=payload.start_date,
            end_date=payload.end_date,
            now=utc_now(),
        )
        return SupervisorController.to_out(supervision)

    @staticmethod
    def update_supervisor(supervision_id: int, payload: SupervisorUpdate, db: Session) -> SupervisorOut:
        supervision = SupervisorService(db).update(supervision_id, payload.model_dump(exclude_unset=True))
        return SupervisorController.to_out(supervision)

    @staticmethod
    def delete_supervisor(supervision_id: int, db: Session) -> None:
        SupervisorService(db).delete(supervision_id)

    @staticmethod
    def end_supervisor(supervision_id: int, db: Session) -> SupervisorOut:
        return SupervisorController.to_out(SupervisorService(db).end(supervision_id, now=utc_now()))

    @staticmethod
    def list_staff_supervisions(staff_id: int, db: Session) -> List[SupervisorOut]:
        return [SupervisorController.to_out(s) for s in SupervisorService(db).list_for_staff(staff_id)]

    @staticmethod
    def active_staff_supervisions(staff_id: int, db: Session) -> List[SupervisorOut]:
        return [SupervisorController.to_out(s) for s in SupervisorService(db).get_active_for_staff(staff_id)]

    @staticmethod
    def list_group_supervisors(active_group_id: int, db: Session, active_only: bool = False) -> List[SupervisorOut]:
        rows = SupervisorService(db).list_for_group(active_group_id, active_only=active_only)
        return [SupervisorController.to_out(s) for s in rows]
