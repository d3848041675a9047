# api/scheduled_checkouts/scheduled_checkouts_routes.py

from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from api.scheduled_checkouts.scheduled_checkouts_controller import ScheduledCheckoutController
from api.scheduled_checkouts.scheduled_checkouts_schema import (
    ProcessDueResult,
    ScheduledCheckoutCreate,
    ScheduledCheckoutOut,
)
from config.database import get_db
from middlewares.role_middleware import role_middleware
from utils.deps import optional_staff_id
from utils.responses import ApiResponse, respond

router = APIRouter(prefix="/checkouts", tags=["scheduled-checkouts"])


@router.post("", status_code=201, response_model=ApiResponse[ScheduledCheckoutOut], summary="Schedule a checkout")
def schedule_checkout(
    payload: ScheduledCheckoutCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:checkout"])),
):
    staff_id = optional_staff_id(db, current_user)
    return respond(ScheduledCheckoutController.schedule(payload, db, staff_id), "Checkout scheduled successfully")


@router.post(
    "/process-due",
    response_model=ApiResponse[ProcessDueResult],
    responses={207: {"description": "Some checkouts failed"}, 500: {"description": "Every checkout failed"}},
    summary="Execute due scheduled checkouts",
)
def process_due(
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_roles=["admin"])),
):
    result, status_code = ScheduledCheckoutController.process_due(db)
    body = ApiResponse[ProcessDueResult](
        status="success" if status_code == 200 else "partial" if status_code == 207 else "error",
        data=result,
        message=f"Processed {result.total} scheduled checkout(s)",
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get("/student/{student_id}", response_model=ApiResponse[List[ScheduledCheckoutOut]])
def list_student_checkouts(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(ScheduledCheckoutController.list_for_student(student_id, db))


@router.get("/student/{student_id}/pending", response_model=ApiResponse[List[ScheduledCheckoutOut]])
def pending_student_checkouts(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(ScheduledCheckoutController.pending_for_student(student_id, db))


@router.get("/{checkout_id}", response_model=ApiResponse[ScheduledCheckoutOut])
def get_checkout(
    checkout_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(ScheduledCheckoutController.get(checkout_id, db))


@router.post("/{checkout_id}/cancel", response_model=ApiResponse[ScheduledCheckoutOut])
def cancel_checkout(
    checkout_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:checkout"])),
):
    staff_id = optional_staff_id(db, current_user)
    return respond(ScheduledCheckoutController.cancel(checkout_id, db, staff_id), "Scheduled checkout cancelled")
