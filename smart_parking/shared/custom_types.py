# smart_parking/shared/custom_types.py
import datetime
from sqlalchemy import DateTime, JSON, TypeDecorator
from sqlalchemy.dialects.sqlite import DATETIME as SQLITE_DATETIME


class UTCDateTime(TypeDecorator):
    """Stores timezone-aware datetimes as UTC.

    SQLite has no timezone support, so values are written as naive UTC and
    re-tagged with UTC on the way out.
    """
    impl = DateTime
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'sqlite':
            return dialect.type_descriptor(SQLITE_DATETIME())
        else:
            return dialect.type_descriptor(DateTime(timezone=True))

    def process_bind_param(self, value: datetime.datetime | None, dialect) -> datetime.datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            # Naive values are taken to be UTC already
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime.datetime | None, dialect) -> datetime.datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)


class WeekdayKeyedJSON(TypeDecorator):
    """JSON column for tables keyed by day of week (0=Sunday .. 6=Saturday).

    JSON object keys are always strings; this restores the integer keys so the
    domain layer never sees "1" where it expects 1.
    """
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value: dict | None, dialect) -> dict | None:
        if value is None:
            return None
        return {str(day): entry for day, entry in value.items()}

    def process_result_value(self, value: dict | None, dialect) -> dict | None:
        if value is None:
            return None
        return {int(day): entry for day, entry in value.items()}
