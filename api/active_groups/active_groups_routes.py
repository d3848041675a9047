# api/active_groups/active_groups_routes.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.active_groups.active_groups_controller import ActiveGroupController
from api.active_groups.active_groups_schema import (
    ActiveGroupCreate,
    ActiveGroupOut,
    ActiveGroupUpdate,
    ActiveGroupWithVisitsOut,
    ClaimRequest,
)
from api.staff.staff_model import Staff
from api.supervisors.supervisors_schema import SupervisorOut
from api.visits.visits_schema import VisitDisplayOut
from config.database import get_db
from middlewares.role_middleware import role_middleware
from utils.deps import get_current_staff, resolve_staff
from utils.query_params import QueryParams
from utils.responses import ApiResponse, respond

router = APIRouter(prefix="/active", tags=["active-groups"])


@router.get("/groups", response_model=ApiResponse[List[ActiveGroupOut]], summary="List active groups")
def list_groups(
    active: Optional[bool] = Query(None, description="true: running, false: ended"),
    room_id: Optional[int] = Query(None),
    group_id: Optional[int] = Query(None),
    params: QueryParams = Depends(),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(ActiveGroupController.list_groups(db, active, room_id, group_id, params))


@router.post("/groups", status_code=201, response_model=ApiResponse[ActiveGroupOut], summary="Start an active group")
def create_group(
    payload: ActiveGroupCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:create"])),
):
    return respond(ActiveGroupController.create_group(payload, db), "Active group created successfully")


@router.get("/groups/room/{room_id}", response_model=ApiResponse[List[ActiveGroupOut]], summary="Active groups in a room")
def list_room_groups(
    room_id: int,
    params: QueryParams = Depends(),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(ActiveGroupController.list_groups(db, True, room_id, None, params))


@router.get("/groups/{group_id}", response_model=ApiResponse[ActiveGroupOut])
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(ActiveGroupController.get_group(group_id, db))


@router.put("/groups/{group_id}", response_model=ApiResponse[ActiveGroupOut])
def update_group(
    group_id: int,
    payload: ActiveGroupUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:update"])),
):
    return respond(ActiveGroupController.update_group(group_id, payload, db), "Active group updated successfully")


@router.delete("/groups/{group_id}", response_model=ApiResponse[None])
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:delete"])),
):
    ActiveGroupController.delete_group(group_id, db)
    return respond(None, "Active group deleted successfully")


@router.post("/groups/{group_id}/end", response_model=ApiResponse[ActiveGroupOut], summary="End an active group")
def end_group(
    group_id: int,
    cascade: bool = Query(False, description="also close open visits and supervisions"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:update"])),
):
    return respond(ActiveGroupController.end_group(group_id, db, cascade=cascade), "Active group ended successfully")


@router.get("/groups/{group_id}/visits", response_model=ApiResponse[ActiveGroupWithVisitsOut])
def group_visits(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(ActiveGroupController.group_with_visits(group_id, db))


@router.get("/groups/{group_id}/visits/display", response_model=ApiResponse[List[VisitDisplayOut]])
def group_visits_display(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    staff = resolve_staff(db, current_user)
    return respond(ActiveGroupController.display_visits(group_id, current_user, staff, db))


@router.get("/groups/{group_id}/supervisors", response_model=ApiResponse[ActiveGroupOut])
def group_supervisors(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(ActiveGroupController.group_with_supervisors(group_id, db))


@router.get("/unclaimed", response_model=ApiResponse[List[ActiveGroupOut]], summary="Running groups nobody supervises")
def list_unclaimed(
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(ActiveGroupController.list_unclaimed(db))


@router.post("/groups/{group_id}/claim", response_model=ApiResponse[SupervisorOut], summary="Claim an unclaimed group")
def claim_group(
    group_id: int,
    payload: Optional[ClaimRequest] = None,
    db: Session = Depends(get_db),
    staff: Staff = Depends(get_current_staff),
):
    role = payload.role if payload else "supervisor"
    return respond(ActiveGroupController.claim_group(group_id, staff, role, db), "Group claimed successfully")
