"""
Domain errors for the active session service.

Every failure raised by a service is an ``ActiveError`` tagged with an
``ErrorKind`` and the name of the operation that failed. The HTTP status
is derived from the kind in one place (``STATUS_BY_KIND``) so routes never
pick status codes themselves.
"""
import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    # not found
    ACTIVE_GROUP_NOT_FOUND = "ACTIVE_GROUP_NOT_FOUND"
    VISIT_NOT_FOUND = "VISIT_NOT_FOUND"
    GROUP_SUPERVISOR_NOT_FOUND = "GROUP_SUPERVISOR_NOT_FOUND"
    COMBINED_GROUP_NOT_FOUND = "COMBINED_GROUP_NOT_FOUND"
    GROUP_MAPPING_NOT_FOUND = "GROUP_MAPPING_NOT_FOUND"
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    STAFF_NOT_FOUND = "STAFF_NOT_FOUND"
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    SCHEDULED_CHECKOUT_NOT_FOUND = "SCHEDULED_CHECKOUT_NOT_FOUND"

    # already ended
    ACTIVE_GROUP_ALREADY_ENDED = "ACTIVE_GROUP_ALREADY_ENDED"
    VISIT_ALREADY_ENDED = "VISIT_ALREADY_ENDED"
    SUPERVISION_ALREADY_ENDED = "SUPERVISION_ALREADY_ENDED"
    COMBINED_GROUP_ALREADY_ENDED = "COMBINED_GROUP_ALREADY_ENDED"

    # state conflicts
    STUDENT_ALREADY_ACTIVE = "STUDENT_ALREADY_ACTIVE"
    STUDENT_ALREADY_IN_GROUP = "STUDENT_ALREADY_IN_GROUP"
    STAFF_ALREADY_SUPERVISING = "STAFF_ALREADY_SUPERVISING"
    GROUP_ALREADY_IN_COMBINATION = "GROUP_ALREADY_IN_COMBINATION"
    CANNOT_DELETE_ACTIVE_GROUP = "CANNOT_DELETE_ACTIVE_GROUP"
    SCHEDULED_CHECKOUT_ALREADY_PROCESSED = "SCHEDULED_CHECKOUT_ALREADY_PROCESSED"
    INVALID_TIME_RANGE = "INVALID_TIME_RANGE"

    ROOM_CONFLICT = "ROOM_CONFLICT"
    INVALID_DATA = "INVALID_DATA"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    DATABASE_ERROR = "DATABASE_ERROR"


STATUS_TEXT: Dict[ErrorKind, str] = {
    ErrorKind.ACTIVE_GROUP_NOT_FOUND: "Active Group Not Found",
    ErrorKind.VISIT_NOT_FOUND: "Visit Not Found",
    ErrorKind.GROUP_SUPERVISOR_NOT_FOUND: "Group Supervisor Not Found",
    ErrorKind.COMBINED_GROUP_NOT_FOUND: "Combined Group Not Found",
    ErrorKind.GROUP_MAPPING_NOT_FOUND: "Group Mapping Not Found",
    ErrorKind.STUDENT_NOT_FOUND: "Student Not Found",
    ErrorKind.STAFF_NOT_FOUND: "Staff Not Found",
    ErrorKind.ROOM_NOT_FOUND: "Room Not Found",
    ErrorKind.SCHEDULED_CHECKOUT_NOT_FOUND: "Scheduled Checkout Not Found",
    ErrorKind.ACTIVE_GROUP_ALREADY_ENDED: "Active Group Already Ended",
    ErrorKind.VISIT_ALREADY_ENDED: "Visit Already Ended",
    ErrorKind.SUPERVISION_ALREADY_ENDED: "Supervision Already Ended",
    ErrorKind.COMBINED_GROUP_ALREADY_ENDED: "Combined Group Already Ended",
    ErrorKind.STUDENT_ALREADY_ACTIVE: "Student Already Has Active Visit",
    ErrorKind.STUDENT_ALREADY_IN_GROUP: "Student Already In Group",
    ErrorKind.STAFF_ALREADY_SUPERVISING: "Staff Already Supervising This Group",
    ErrorKind.GROUP_ALREADY_IN_COMBINATION: "Group Already In Combination",
    ErrorKind.CANNOT_DELETE_ACTIVE_GROUP: "Cannot Delete Active Group With Active Visits",
    ErrorKind.SCHEDULED_CHECKOUT_ALREADY_PROCESSED: "Scheduled Checkout Already Processed",
    ErrorKind.INVALID_TIME_RANGE: "Invalid Time Range",
    ErrorKind.ROOM_CONFLICT: "Room Already Occupied By Another Active Group",
    ErrorKind.INVALID_DATA: "Invalid Request",
    ErrorKind.UNAUTHORIZED: "Unauthorized",
    ErrorKind.FORBIDDEN: "Forbidden",
    ErrorKind.DATABASE_ERROR: "Internal Server Error",
}

_NOT_FOUND = {
    ErrorKind.ACTIVE_GROUP_NOT_FOUND,
    ErrorKind.VISIT_NOT_FOUND,
    ErrorKind.GROUP_SUPERVISOR_NOT_FOUND,
    ErrorKind.COMBINED_GROUP_NOT_FOUND,
    ErrorKind.GROUP_MAPPING_NOT_FOUND,
    ErrorKind.STUDENT_NOT_FOUND,
    ErrorKind.STAFF_NOT_FOUND,
    ErrorKind.ROOM_NOT_FOUND,
    ErrorKind.SCHEDULED_CHECKOUT_NOT_FOUND,
}

STATUS_BY_KIND: Dict[ErrorKind, int] = {}
for _kind in ErrorKind:
    STATUS_BY_KIND[_kind] = 404 if _kind in _NOT_FOUND else 400
STATUS_BY_KIND[ErrorKind.ROOM_CONFLICT] = 409
STATUS_BY_KIND[ErrorKind.UNAUTHORIZED] = 401
STATUS_BY_KIND[ErrorKind.FORBIDDEN] = 403
STATUS_BY_KIND[ErrorKind.DATABASE_ERROR] = 500


class ActiveError(Exception):
    """A failed operation: what went wrong (kind) and where (op)."""

    def __init__(self, kind: ErrorKind, op: str, detail: Optional[str] = None):
        self.kind = kind
        self.op = op
        self.detail = detail
        super().__init__(f"{op}: {STATUS_TEXT[kind]}" + (f" ({detail})" if detail else ""))

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    @property
    def status_text(self) -> str:
        return STATUS_TEXT[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "status": "error",
            "error": self.status_text,
            "code": self.kind.value,
            "op": self.op,
        }
        # storage detail stays in the logs
        if self.detail and self.kind != ErrorKind.DATABASE_ERROR:
            body["detail"] = self.detail
        return body


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports a unique/primary key violation."""
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode is not None:
        return pgcode == "23505"
    return "unique" in str(orig).lower()


def database_error(op: str, exc: SQLAlchemyError) -> ActiveError:
    logger.error("%s failed with a storage error: %s", op, exc)
    return ActiveError(ErrorKind.DATABASE_ERROR, op, str(exc))


# ------------------------------------------
# FastAPI exception handlers
# ------------------------------------------
async def active_error_handler(request: Request, exc: ActiveError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s -> %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = {
        "status": "error",
        "error": STATUS_TEXT[ErrorKind.INVALID_DATA],
        "code": ErrorKind.INVALID_DATA.value,
        "op": f"{request.method} {request.url.path}",
        "detail": [
            {"loc": list(err.get("loc", [])), "msg": err.get("msg")}
            for err in exc.errors()
        ],
    }
    return JSONResponse(status_code=400, content=body)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Unhandled storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=ActiveError(ErrorKind.DATABASE_ERROR, f"{request.method} {request.url.path}").to_dict(),
    )


def register_error_handlers(app) -> None:
    app.add_exception_handler(ActiveError, active_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
