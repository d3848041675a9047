import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from api.analytics import analytics_service
from api.analytics.analytics_schema import (
    CountsOut,
    DashboardOut,
    RoomUtilizationOut,
    StudentAttendanceOut,
)
from utils.cache_utils import cache_manager, cache_result
from utils.database_utils import utc_now

logger = logging.getLogger(__name__)

DASHBOARD_CACHE_KEY = "cache:analytics:dashboard"


@cache_result("analytics:room", skip_args=1)
def _room_utilization(db: Session, room_id: int) -> Dict[str, Any]:
    data = analytics_service.get_room_utilization(db, room_id, utc_now())
    return RoomUtilizationOut.model_validate(data).model_dump(mode="json")


class AnalyticsController:
    @staticmethod
    def counts(db: Session) -> CountsOut:
        return CountsOut.model_validate(analytics_service.get_counts(db, utc_now()))

    @staticmethod
    def dashboard(db: Session) -> DashboardOut:
        cached = cache_manager.get(DASHBOARD_CACHE_KEY)
        if cached is not None:
            logger.debug("Dashboard served from cache")
            return DashboardOut.model_validate(cached)

        out = DashboardOut.model_validate(analytics_service.get_dashboard(db, utc_now()))
        cache_manager.set(DASHBOARD_CACHE_KEY, out.model_dump(mode="json"))
        return out

    @staticmethod
    def room_utilization(room_id: int, db: Session) -> RoomUtilizationOut:
        return RoomUtilizationOut.model_validate(_room_utilization(db, room_id))

    @staticmethod
    def student_attendance(student_id: int, days: int, db: Session) -> StudentAttendanceOut:
        data = analytics_service.get_student_attendance(db, student_id, days, utc_now())
        return StudentAttendanceOut.model_validate(data)
