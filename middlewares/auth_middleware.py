from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config.settings import settings
from utils.errors import ActiveError, ErrorKind

# auto_error off: a missing header is a 401 like any other bad token
security = HTTPBearer(auto_error=False)

OP = "Authenticate"


def auth_middleware(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    if credentials is None or not credentials.credentials:
        raise ActiveError(ErrorKind.UNAUTHORIZED, OP, "missing bearer token")

    token = credentials.credentials
    try:
        decoded = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        # expired token → 401
        raise ActiveError(ErrorKind.UNAUTHORIZED, OP, "token has expired")
    except jwt.InvalidTokenError:
        # any other decode error → 401
        raise ActiveError(ErrorKind.UNAUTHORIZED, OP, "invalid token")

    user_id = decoded.get("id")
    if not user_id:
        # token was structurally OK but payload missing
        raise ActiveError(ErrorKind.UNAUTHORIZED, OP, "invalid token payload")

    return {
        "id": user_id,
        "name": decoded.get("username"),
        "roles": list(decoded.get("roles") or []),
        "permissions": list(decoded.get("permissions") or []),
        "staff_id": decoded.get("staff_id"),
    }
