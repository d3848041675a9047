from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.analytics.analytics_controller import AnalyticsController
from api.analytics.analytics_schema import (
    CountsOut,
    DashboardOut,
    RoomUtilizationOut,
    StudentAttendanceOut,
)
from config.database import get_db
from middlewares.role_middleware import role_middleware
from utils.responses import ApiResponse, respond

router = APIRouter(prefix="/active/analytics", tags=["analytics"])


@router.get("/counts", response_model=ApiResponse[CountsOut])
def counts(
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(AnalyticsController.counts(db))


@router.get("/dashboard", response_model=ApiResponse[DashboardOut], summary="Live overview of the building")
def dashboard(
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(AnalyticsController.dashboard(db))


@router.get("/rooms/{room_id}/utilization", response_model=ApiResponse[RoomUtilizationOut])
def room_utilization(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["group:read"])),
):
    return respond(AnalyticsController.room_utilization(room_id, db))


@router.get("/students/{student_id}/attendance", response_model=ApiResponse[StudentAttendanceOut])
def student_attendance(
    student_id: int,
    days: int = Query(30, ge=1, le=366),
    db: Session = Depends(get_db),
    current_user: dict = Depends(role_middleware(required_permissions=["attendance:read"])),
):
    return respond(AnalyticsController.student_attendance(student_id, days, db))
