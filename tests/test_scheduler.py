"""Turning an admin's weekday and wall-clock time into class instants."""

from datetime import date, datetime, time, timezone

import pytest

from wellnest.core.errors import ValidationError
from wellnest.crud.classCrud import get_class
from wellnest.crud.settingsCrud import MAX_WEEKS_AHEAD, update_settings
from wellnest.services.class_scheduler import ClassSchedulerService

from factories import make_discipline, make_instructor

# 2030-01-01 is a Tuesday; El Salvador stays at UTC-6 all year
START = date(2030, 1, 1)
BEFORE_START = datetime(2029, 12, 1, tzinfo=timezone.utc)


class TestOccurrences:

    def test_next_matching_weekday_in_utc(self):
        scheduler = ClassSchedulerService(None, tz="America/El_Salvador")

        instants = scheduler.occurrences(0, time(7, 0), 3, start_from=START, now=BEFORE_START)

        assert instants == [
            datetime(2030, 1, 7, 13, 0, tzinfo=timezone.utc),
            datetime(2030, 1, 14, 13, 0, tzinfo=timezone.utc),
            datetime(2030, 1, 21, 13, 0, tzinfo=timezone.utc),
        ]

    def test_start_day_counts_when_it_matches(self):
        scheduler = ClassSchedulerService(None, tz="America/El_Salvador")

        instants = scheduler.occurrences(1, time(18, 30), 1, start_from=START, now=BEFORE_START)

        assert instants == [datetime(2030, 1, 2, 0, 30, tzinfo=timezone.utc)]

    def test_past_instants_are_skipped(self):
        scheduler = ClassSchedulerService(None, tz="America/El_Salvador")
        now = datetime(2030, 1, 10, tzinfo=timezone.utc)

        instants = scheduler.occurrences(0, time(7, 0), 3, start_from=START, now=now)

        assert [i.day for i in instants] == [14, 21]

    def test_weekday_out_of_range(self):
        scheduler = ClassSchedulerService(None)

        with pytest.raises(ValidationError):
            scheduler.occurrences(7, time(7, 0), 1)


class TestSchedule:

    async def test_single_class_uses_default_capacity(self, db):
        discipline = await make_discipline(db)
        instructor = await make_instructor(db)

        stats = await ClassSchedulerService(db, tz="America/El_Salvador").schedule(
            discipline_id=discipline.id,
            instructor_id=instructor.id,
            weekday=2,
            start_time=time(9, 0),
            duration=50,
            weeks_ahead=4,
            start_from=START,
        )

        assert stats["classes_created"] == 1
        studio_class = await get_class(db, stats["class_ids"][0])
        assert studio_class.max_capacity == 15
        assert studio_class.date_time == datetime(2030, 1, 2, 15, 0, tzinfo=timezone.utc)
        assert studio_class.is_recurring is False

    async def test_recurring_batch_is_capped_by_setting(self, db):
        discipline = await make_discipline(db)
        instructor = await make_instructor(db)
        await update_settings(db, {MAX_WEEKS_AHEAD: "2"})

        stats = await ClassSchedulerService(db, tz="America/El_Salvador").schedule(
            discipline_id=discipline.id,
            instructor_id=instructor.id,
            weekday=4,
            start_time=time(19, 0),
            duration=60,
            max_capacity=8,
            weeks_ahead=6,
            is_recurring=True,
            start_from=START,
        )

        assert stats["classes_created"] == 2
        classes = [await get_class(db, class_id) for class_id in stats["class_ids"]]
        assert all(c.is_recurring and c.max_capacity == 8 for c in classes)

    async def test_bad_duration_creates_nothing(self, db):
        discipline = await make_discipline(db)
        instructor = await make_instructor(db)

        with pytest.raises(ValidationError):
            await ClassSchedulerService(db).schedule(
                discipline_id=discipline.id,
                instructor_id=instructor.id,
                weekday=0,
                start_time=time(7, 0),
                duration=5,
                weeks_ahead=3,
                is_recurring=True,
                start_from=START,
            )
