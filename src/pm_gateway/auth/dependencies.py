"""FastAPI dependencies for the caller's identity.

Authentication happens upstream: the gateway verifies the session and forwards
the user id (and role) as trusted headers. Usage in any protected router:

    from src.pm_gateway.auth.dependencies import get_current_user_id

    @router.get("/protected")
    async def protected(user_id: Annotated[str, Depends(get_current_user_id)]):
        ...
"""

from typing import Annotated

from fastapi import Depends, Header

from src.pm_common.errors import AppError, UnauthorizedError

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"

ADMIN_ROLES = frozenset({"ADMIN", "SUPER_ADMIN"})


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> str:
    """Return the authenticated user id or raise 401."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()


async def require_admin(
    user_id: Annotated[str, Depends(get_current_user_id)],
    x_user_role: Annotated[str | None, Header(alias=USER_ROLE_HEADER)] = None,
) -> str:
    """Verify the caller carries an admin role.

    Raises HTTP 403 (AppError code 9005) otherwise. Protects resolution,
    cancellation, manual adjustments and the ledger audit.
    """
    if (x_user_role or "").upper() not in ADMIN_ROLES:
        raise AppError(9005, "Admin role required", 403)
    return user_id
