from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


async def lock_key(db: AsyncSession, key: str) -> None:
    """Serialize work on `key` until the current transaction ends.

    Uses a transaction-scoped advisory lock on PostgreSQL. Other backends
    (sqlite in tests) already serialize writers, so this is a no-op there.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    await db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})
