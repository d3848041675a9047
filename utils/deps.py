from typing import Any, Dict, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from api.staff.staff_model import Staff
from config.database import get_db
from middlewares.auth_middleware import auth_middleware
from utils.errors import ActiveError, ErrorKind


def resolve_staff(db: Session, user: Dict[str, Any]) -> Optional[Staff]:
    """The staff record behind the caller: `staff_id` claim, else the account link."""
    staff_id = user.get("staff_id")
    if staff_id is not None:
        return db.query(Staff).filter(Staff.id == staff_id).first()
    return db.query(Staff).filter(Staff.account_id == user.get("id")).first()


def get_current_staff(
    user: Dict[str, Any] = Depends(auth_middleware),
    db: Session = Depends(get_db),
) -> Staff:
    staff = resolve_staff(db, user)
    if staff is None:
        raise ActiveError(ErrorKind.FORBIDDEN, "ResolveStaff", "user is not a staff member")
    return staff


def optional_staff_id(db: Session, user: Dict[str, Any]) -> Optional[int]:
    staff = resolve_staff(db, user)
    return staff.id if staff else None
