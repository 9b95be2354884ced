import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import coerce_int
from wellnest.models import User


async def get_user_by_id(db: AsyncSession, user_id) -> Optional[User]:
    user_id = coerce_int(user_id)
    if user_id is None:
        return None
    res = await db.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()


async def get_user_by_qr(db: AsyncSession, qr_code: str) -> Optional[User]:
    qr_code = (qr_code or "").strip()
    if not qr_code:
        return None
    res = await db.execute(select(User).where(User.qr_code == qr_code))
    return res.scalar_one_or_none()


def new_qr_code() -> str:
    """Opaque token printed in a member's QR code."""
    return secrets.token_urlsafe(24)
