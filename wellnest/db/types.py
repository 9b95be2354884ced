"""Column types shared by the models."""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer, TIMESTAMP
from sqlalchemy.types import TypeDecorator

# BIGSERIAL on PostgreSQL, INTEGER (rowid alias) on sqlite so autoincrement works in tests
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware instant stored in UTC.

    Naive values are rejected on the way in; values coming back from drivers
    that drop the offset (sqlite) get UTC attached.
    """

    impl = TIMESTAMP(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetime given; store instants as timezone-aware UTC")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
