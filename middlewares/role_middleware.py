from typing import Any, Dict, List

from fastapi import Depends

from middlewares.auth_middleware import auth_middleware
from utils.errors import ActiveError, ErrorKind

ADMIN_ROLE = "admin"


def role_middleware(
    required_roles: List[str] = None,
    required_permissions: List[str] = None
):
    # avoid mutable default args
    required_roles = required_roles or []
    required_permissions = required_permissions or []

    def dependency(user: Dict[str, Any] = Depends(auth_middleware)):
        # auth_middleware already raises 401 for bad tokens, so user is guaranteed
        user_roles = user.get("roles", [])
        user_permissions = user.get("permissions", [])

        if ADMIN_ROLE in user_roles:
            return user

        # 1️⃣ Check roles (if any)
        if required_roles and not any(r in user_roles for r in required_roles):
            raise ActiveError(ErrorKind.FORBIDDEN, "Authorize", f"requires one of roles {required_roles}")

        # 2️⃣ Check permissions (if any)
        if required_permissions and not all(p in user_permissions for p in required_permissions):
            raise ActiveError(ErrorKind.FORBIDDEN, "Authorize", f"requires permissions {required_permissions}")

        return user

    return dependency


def is_admin(user: Dict[str, Any]) -> bool:
    return ADMIN_ROLE in user.get("roles", [])
