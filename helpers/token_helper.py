import datetime
from typing import Any, Dict, List, Optional

import jwt

from config.settings import settings


def create_access_token(
    payload: Dict[str, Any],
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Generate a JWT access token with the given payload and expiration.
    """
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(minutes=minutes)
    to_encode = payload.copy()
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(
    account_id: int,
    username: str,
    roles: Optional[List[str]] = None,
    permissions: Optional[List[str]] = None,
    staff_id: Optional[int] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Generate a JWT for an account, embedding:
      - id
      - username
      - roles (as a list of strings)
      - permissions (deduplicated list)
      - staff_id (when the account belongs to a staff member)
    """
    token_payload: Dict[str, Any] = {
        "id":          account_id,
        "username":    username,
        "roles":       roles or ["user"],
        "permissions": sorted(set(permissions or [])),
    }
    if staff_id is not None:
        token_payload["staff_id"] = staff_id

    return create_access_token(token_payload, expires_minutes)
