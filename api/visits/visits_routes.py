# api/visits/visits_routes.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.visits.visits_controller import VisitController
from api.visits.visits_schema import VisitCreate, VisitEnd, VisitOut, VisitUpdate
from config.database import get_db
from middlewares.role_middleware import role_middleware
from utils.deps import optional_staff_id
from utils.query_params import QueryParams
from utils.responses import ApiResponse, respond

router = APIRouter(prefix="/active/visits", tags=["visits"])


@router.get("", response_model=ApiResponse[List[VisitOut]], summary="List visits")
def list_visits(
    active: Optional[bool] = Query(None),
    student_id: Optional[int] = Query(None),
    active_group_id: Optional[int] = Query(None),
    params: QueryParams = Depends(),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(VisitController.list_visits(db, active, student_id, active_group_id, params))


@router.post("", status_code=201, response_model=ApiResponse[VisitOut], summary="Check a student in")
def create_visit(
    payload: VisitCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:checkin"])),
):
    staff_id = optional_staff_id(db, current_user)
    return respond(VisitController.create_visit(payload, db, staff_id), "Student checked in successfully")


@router.get("/student/{student_id}", response_model=ApiResponse[List[VisitOut]])
def list_student_visits(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(VisitController.list_student_visits(student_id, db))


@router.get("/student/{student_id}/current", response_model=ApiResponse[VisitOut], summary="Open visit of a student")
def current_student_visit(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    visit = VisitController.current_student_visit(student_id, db)
    return respond(visit, None if visit else "Student is not checked in")


@router.get("/group/{active_group_id}", response_model=ApiResponse[List[VisitOut]])
def list_group_visits(
    active_group_id: int,
    active: bool = Query(False, description="only open visits"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(VisitController.list_group_visits(active_group_id, db, active_only=active))


@router.get("/{visit_id}", response_model=ApiResponse[VisitOut])
def get_visit(
    visit_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(VisitController.get_visit(visit_id, db))


@router.put("/{visit_id}", response_model=ApiResponse[VisitOut])
def update_visit(
    visit_id: int,
    payload: VisitUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:update"])),
):
    return respond(VisitController.update_visit(visit_id, payload, db), "Visit updated successfully")


@router.delete("/{visit_id}", response_model=ApiResponse[None])
def delete_visit(
    visit_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:delete"])),
):
    VisitController.delete_visit(visit_id, db)
    return respond(None, "Visit deleted successfully")


@router.post("/{visit_id}/end", response_model=ApiResponse[VisitOut], summary="Check a student out")
def end_visit(
    visit_id: int,
    payload: Optional[VisitEnd] = None,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:checkout"])),
):
    staff_id = optional_staff_id(db, current_user)
    return respond(VisitController.end_visit(visit_id, payload, db, staff_id), "Student checked out successfully")
