from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from core.security import verify_access_token
from core.exceptions import credentials_exception, forbidden_exception
from database import db
from models.common import UserType

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    if not credentials:
        raise credentials_exception()
    payload = verify_access_token(credentials.credentials)
    if not payload:
        raise credentials_exception()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise credentials_exception()

    user = await db.users.find_one({"id": user_id}, {"_id": 0})
    if not user:
        raise credentials_exception()
    if not user.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account disabled",
        )
    return user


def require_role(*roles: UserType):
    """
    Checks that the authenticated user has one of the given types.
    Usage: Depends(require_role(UserType.ADMIN))
    """
    allowed = [r.value for r in roles]
    detail = f"{' or '.join(allowed).replace('_', ' ').capitalize()} access required"

    async def _check(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("type") not in allowed:
            raise forbidden_exception(detail)
        return current_user
    return _check


require_admin = require_role(UserType.ADMIN)


def is_admin(user: dict) -> bool:
    return user.get("type") == UserType.ADMIN.value


def ensure_self_or_admin(current_user: dict, user_id: int) -> None:
    if not is_admin(current_user) and current_user["id"] != user_id:
        raise forbidden_exception()


async def ensure_vendor_access(current_user: dict, vendor_id: int) -> None:
    """Admins see every vendor; a vendor owner only sees the vendors they own."""
    if is_admin(current_user):
        return
    owned = await db.vendors.find_one({"id": vendor_id, "user_id": current_user["id"]}, {"_id": 0, "id": 1})
    if not owned:
        raise forbidden_exception()
