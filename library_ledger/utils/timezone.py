from datetime import datetime
from typing import Optional
import pytz
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from library_ledger.config import settings

LOCAL_TZ = pytz.timezone(settings.timezone)

def now() -> datetime:
    """Get current datetime in the configured library timezone."""
    return datetime.now(LOCAL_TZ)

def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Localize naive datetimes (e.g. from request bodies) to the library timezone."""
    if value is None or value.tzinfo is not None:
        return value
    return LOCAL_TZ.localize(value)

def to_local(value: datetime) -> datetime:
    """Express an instant in the library timezone with the offset in force at that instant.

    Aware arithmetic keeps the offset of its operand, so a date pushed across a
    DST change must be passed through here before it is shown or compared by wall clock.
    """
    return ensure_aware(value).astimezone(LOCAL_TZ)

def to_iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_aware(value).isoformat() if value else None


class LocalDateTime(TypeDecorator):
    """Timestamp written as UTC and read back in the library timezone.

    SQLite keeps no UTC offset.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return ensure_aware(value).astimezone(pytz.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return to_local(value)
