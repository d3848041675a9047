# api/supervisors/supervisors_routes.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.supervisors.supervisors_controller import SupervisorController
from api.supervisors.supervisors_schema import SupervisorCreate, SupervisorOut, SupervisorUpdate
from config.database import get_db
from middlewares.role_middleware import role_middleware
from utils.query_params import QueryParams
from utils.responses import ApiResponse, respond

router = APIRouter(prefix="/active/supervisors", tags=["supervisors"])


@router.get("", response_model=ApiResponse[List[SupervisorOut]])
def list_supervisors(
    active: Optional[bool] = Query(None),
    staff_id: Optional[int] = Query(None),
    active_group_id: Optional[int] = Query(None),
    params: QueryParams = Depends(),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(SupervisorController.list_supervisors(db, active, staff_id, active_group_id, params))


@router.post("", status_code=201, response_model=ApiResponse[SupervisorOut], summary="Assign a supervisor")
def create_supervisor(
    payload: SupervisorCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:assign"])),
):
    return respond(SupervisorController.create_supervisor(payload, db), "Supervisor assigned successfully")


@router.get("/staff/{staff_id}", response_model=ApiResponse[List[SupervisorOut]])
def list_staff_supervisions(
    staff_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(SupervisorController.list_staff_supervisions(staff_id, db))


@router.get("/staff/{staff_id}/active", response_model=ApiResponse[List[SupervisorOut]])
def active_staff_supervisions(
    staff_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(SupervisorController.active_staff_supervisions(staff_id, db))


@router.get("/group/{active_group_id}", response_model=ApiResponse[List[SupervisorOut]])
def list_group_supervisors(
    active_group_id: int,
    active: bool = Query(False, description="only active supervisions"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(SupervisorController.list_group_supervisors(active_group_id, db, active_only=active))


@router.get("/{supervision_id}", response_model=ApiResponse[SupervisorOut])
def get_supervisor(
    supervision_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(SupervisorController.get_supervisor(supervision_id, db))


@router.put("/{supervision_id}", response_model=ApiResponse[SupervisorOut])
def update_supervisor(
    supervision_id: int,
    payload: SupervisorUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:assign"])),
):
    return respond(SupervisorController.update_supervisor(supervision_id, payload, db), "Supervisor updated successfully")


@router.delete("/{supervision_id}", response_model=ApiResponse[None])
def delete_supervisor(
    supervision_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:assign"])),
):
    SupervisorController.delete_supervisor(supervision_id, db)
    return respond(None, "Supervisor deleted successfully")


@router.post("/{supervision_id}/end", response_model=ApiResponse[SupervisorOut])
def end_supervisor(
    supervision_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:assign"])),
):
    return respond(SupervisorController.end_supervisor(supervision_id, db), "Supervision ended successfully")
