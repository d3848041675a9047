# api/combined_groups/combined_groups_routes.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.active_groups.active_groups_schema import ActiveGroupOut
from api.combined_groups.combined_groups_controller import CombinedGroupController
from api.combined_groups.combined_groups_schema import (
    AddGroupRequest,
    CombinedGroupCreate,
    CombinedGroupCreatedOut,
    CombinedGroupOut,
    CombinedGroupUpdate,
    GroupMappingOut,
)
from config.database import get_db
from middlewares.role_middleware import role_middleware
from utils.query_params import QueryParams
from utils.responses import ApiResponse, respond

router = APIRouter(prefix="/active/combined-groups", tags=["combined-groups"])


@router.get("", response_model=ApiResponse[List[CombinedGroupOut]])
def list_combined(
    active: Optional[bool] = Query(None),
    params: QueryParams = Depends(),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(CombinedGroupController.list_combined(db, active, params))


@router.post("", status_code=201, response_model=ApiResponse[CombinedGroupCreatedOut], summary="Create a combined group")
def create_combined(
    payload: CombinedGroupCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:create"])),
):
    return respond(CombinedGroupController.create_combined(payload, db), "Combined group created successfully")


# must stay above /{combined_id}
@router.get("/active", response_model=ApiResponse[List[CombinedGroupOut]])
def list_active_combined(
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(CombinedGroupController.list_active_combined(db))


@router.get("/{combined_id}", response_model=ApiResponse[CombinedGroupOut])
def get_combined(
    combined_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(CombinedGroupController.get_combined(combined_id, db))


@router.put("/{combined_id}", response_model=ApiResponse[CombinedGroupOut])
def update_combined(
    combined_id: int,
    payload: CombinedGroupUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:update"])),
):
    return respond(CombinedGroupController.update_combined(combined_id, payload, db), "Combined group updated successfully")


@router.delete("/{combined_id}", response_model=ApiResponse[None])
def delete_combined(
    combined_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:delete"])),
):
    CombinedGroupController.delete_combined(combined_id, db)
    return respond(None, "Combined group deleted successfully")


@router.post("/{combined_id}/end", response_model=ApiResponse[CombinedGroupOut])
def end_combined(
    combined_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:update"])),
):
    return respond(CombinedGroupController.end_combined(combined_id, db), "Combined group ended successfully")


@router.get("/{combined_id}/mappings", response_model=ApiResponse[List[GroupMappingOut]])
def list_mappings(
    combined_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(CombinedGroupController.list_mappings(combined_id, db))


@router.get("/{combined_id}/groups", response_model=ApiResponse[List[ActiveGroupOut]])
def list_groups(
    combined_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(CombinedGroupController.list_groups(combined_id, db))


@router.post("/{combined_id}/groups", status_code=201, response_model=ApiResponse[GroupMappingOut])
def add_group(
    combined_id: int,
    payload: AddGroupRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:update"])),
):
    return respond(CombinedGroupController.add_group(combined_id, payload, db), "Group added to combination")


@router.delete("/{combined_id}/groups/{group_id}", response_model=ApiResponse[None])
def remove_group(
    combined_id: int,
    group_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:update"])),
):
    CombinedGroupController.remove_group(combined_id, group_id, db)
    return respond(None, "Group removed from combination")
