from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.fastapi import BaseContext

from wellnest.crud.usersCrud import get_user_by_id
from wellnest.db.postgresql import get_db
from wellnest.models import User
from wellnest.security.jwt import bearer_token, verify_token


@dataclass
class Context(BaseContext):
    db: AsyncSession
    request: Request
    response: Response
    user: Optional[User] = None


async def build_context(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Context:
    user = None
    access_token = bearer_token(request.headers.get("authorization")) or request.headers.get("x-access-token")

    if access_token:
        payload = verify_token(access_token)
        if payload:
            user = await get_user_by_id(db, payload.get("user_id"))
            if user is not None and not user.is_active:
                user = None

    return Context(db=db, request=request, response=response, user=user)
