"""
Admin-editable site settings with code defaults.
"""
import logging
from typing import Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import coerce_int
from wellnest.core.errors import ValidationError
from wellnest.db.types import utcnow
from wellnest.models import SiteSetting

logger = logging.getLogger(__name__)

CANCELLATION_HOURS = "cancellationHours"
DEFAULT_CAPACITY = "defaultCapacity"
MAX_WEEKS_AHEAD = "maxWeeksAhead"
CANCELLATION_POLICY = "cancellationPolicy"

DEFAULT_SETTINGS: Dict[str, str] = {
    CANCELLATION_HOURS: "4",
    DEFAULT_CAPACITY: "15",
    MAX_WEEKS_AHEAD: "12",
    CANCELLATION_POLICY: (
        "Reservations can be cancelled up to 4 hours before class. "
        "Refunds are available shortly after purchase only."
    ),
}

INTEGER_SETTINGS = {CANCELLATION_HOURS, DEFAULT_CAPACITY, MAX_WEEKS_AHEAD}


async def get_settings(db: AsyncSession) -> Dict[str, str]:
    """Stored values merged over the defaults."""
    result = await db.execute(select(SiteSetting))
    merged = dict(DEFAULT_SETTINGS)
    for row in result.scalars().all():
        merged[row.key] = row.value
    return merged


async def get_setting(db: AsyncSession, key: str) -> Optional[str]:
    row = await db.get(SiteSetting, key)
    if row is not None:
        return row.value
    return DEFAULT_SETTINGS.get(key)


async def get_int_setting(db: AsyncSession, key: str) -> int:
    """Parse an integer setting, falling back to the default on bad data."""
    value = coerce_int(await get_setting(db, key))
    if value is None:
        fallback = coerce_int(DEFAULT_SETTINGS.get(key))
        if fallback is None:
            raise KeyError(key)
        logger.warning("Setting %s has a non-integer value, using default %s", key, fallback)
        return fallback
    return value


async def update_settings(
    db: AsyncSession,
    values: Mapping[str, object],
    commit: bool = True
) -> Dict[str, str]:
    """Upsert each key. Integer settings must parse and be non-negative."""
    for key, raw in values.items():
        value = str(raw).strip()
        if key in INTEGER_SETTINGS:
            parsed = coerce_int(value)
            if parsed is None or parsed < 0:
                raise ValidationError(f"Setting {key} must be a non-negative integer")

        row = await db.get(SiteSetting, key)
        if row is None:
            db.add(SiteSetting(key=key, value=value))
        else:
            row.value = value
            row.updated_at = utcnow()

    try:
        if commit:
            await db.commit()
        else:
            await db.flush()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info("Settings updated keys=%s", sorted(values.keys()))
    return await get_settings(db)
