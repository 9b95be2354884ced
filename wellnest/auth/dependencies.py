from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import AuthError, ForbiddenError
from wellnest.core.logging_config import log_security_event
from wellnest.crud.usersCrud import get_user_by_id
from wellnest.db.postgresql import get_db
from wellnest.models import User
from wellnest.security.jwt import verify_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Resolve the caller from a bearer token, or None when anonymous."""
    if credentials is None:
        return None
    payload = verify_token(credentials.credentials)
    if payload is None:
        return None
    user = await get_user_by_id(db, payload.get("user_id"))
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Get current authenticated user"""
    if user is None:
        raise AuthError("Could not validate credentials")
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require admin role for access"""
    if not current_user.is_admin:
        log_security_event("admin_denied", f"user_id={current_user.id}")
        raise ForbiddenError("Not enough permissions")
    return current_user
