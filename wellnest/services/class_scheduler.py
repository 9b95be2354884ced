"""
Class Scheduler Service for Wellnest
Creates single classes or weekly recurring batches from an admin's wall-clock time
"""
from datetime import datetime, date, time, timedelta
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.config import settings
from wellnest.core.errors import ValidationError
from wellnest.crud.classCrud import create_class
from wellnest.crud.settingsCrud import MAX_WEEKS_AHEAD, get_int_setting
from wellnest.db.types import utcnow

logger = logging.getLogger(__name__)


class ClassSchedulerService:
    """Expands a weekday + local time into concrete class instants"""

    def __init__(self, db: AsyncSession, tz: Optional[str] = None):
        self.db = db
        self.tz = ZoneInfo(tz or settings.studio_timezone)

    def occurrences(
        self,
        weekday: int,
        start_time: time,
        weeks_ahead: int,
        start_from: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> list:
        """
        Future UTC instants for `weekday` (0=Monday) at `start_time` local.

        Args:
            weekday: Day of the week, Python numbering
            start_time: Wall-clock time in the studio timezone
            weeks_ahead: How many weekly occurrences to consider
            start_from: First local date to consider (defaults to today, local)
            now: Reference instant; occurrences at or before it are skipped

        Returns:
            Sorted list of timezone-aware UTC datetimes
        """
        if not 0 <= weekday <= 6:
            raise ValidationError("weekday must be between 0 (Monday) and 6 (Sunday)")
        now = now or utcnow()
        first_day = start_from or now.astimezone(self.tz).date()
        first_day = first_day + relativedelta(weekday=weekday)

        instants = []
        for week in range(weeks_ahead):
            local_day = first_day + timedelta(weeks=week)
            local_start = datetime.combine(local_day, start_time, tzinfo=self.tz)
            instant = local_start.astimezone(ZoneInfo("UTC"))
            if instant > now:
                instants.append(instant)
        return instants

    async def schedule(
        self,
        *,
        discipline_id: int,
        instructor_id: int,
        weekday: int,
        start_time: time,
        duration: int,
        max_capacity: Optional[int] = None,
        weeks_ahead: int = 1,
        is_recurring: bool = False,
        complementary_discipline_id: Optional[int] = None,
        class_type: Optional[str] = None,
        start_from: Optional[date] = None,
        commit: bool = True
    ) -> Dict[str, Any]:
        """
        Create one class, or one per week for `weeks_ahead` weeks when recurring.

        Returns:
            Statistics with the created class ids and instants
        """
        max_weeks = await get_int_setting(self.db, MAX_WEEKS_AHEAD)
        weeks = min(max(weeks_ahead, 1), max_weeks) if is_recurring else 1

        instants = self.occurrences(weekday, start_time, weeks, start_from=start_from)
        if not instants:
            raise ValidationError("No future occurrences to schedule")

        logger.info(
            "Scheduling %s class(es) discipline_id=%s instructor_id=%s weekday=%s",
            len(instants), discipline_id, instructor_id, weekday,
        )

        created = []
        try:
            for instant in instants:
                studio_class = await create_class(
                    self.db,
                    discipline_id=discipline_id,
                    instructor_id=instructor_id,
                    date_time=instant,
                    duration=duration,
                    max_capacity=max_capacity,
                    complementary_discipline_id=complementary_discipline_id,
                    class_type=class_type,
                    is_recurring=is_recurring,
                    commit=False,
                )
                created.append(studio_class)

            if commit:
                await self.db.commit()
        except Exception:
            if commit:
                await self.db.rollback()
            raise

        return {
            "classes_created": len(created),
            "class_ids": [c.id for c in created],
            "date_range": {
                "start": instants[0].isoformat(),
                "end": instants[-1].isoformat(),
            },
        }
