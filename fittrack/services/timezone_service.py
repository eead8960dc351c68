from datetime import date, datetime, time, timedelta, timezone
from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AfterValidator

from fittrack.config import settings


def get_app_timezone() -> ZoneInfo:
    try:
        return ZoneInfo(settings.APP_TIMEZONE)
    except ZoneInfoNotFoundError:
        return ZoneInfo("UTC")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC instant. Naive values (SQLite reads them back that way) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime) -> date:
    return as_utc(value).astimezone(get_app_timezone()).date()


def local_day_window(now: datetime) -> tuple[datetime, datetime]:
    """[start of today, start of tomorrow) in local time, returned as UTC instants."""
    tz = get_app_timezone()
    today = as_utc(now).astimezone(tz).date()
    start_local = datetime.combine(today, time.min, tzinfo=tz)
    end_local = datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def week_start(day: date) -> date:
    """Sunday-aligned start of the week containing ``day``."""
    # date.weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


# Pydantic field type: naive input is read as UTC, output is always offset-aware
UtcDateTime = Annotated[datetime, AfterValidator(as_utc)]
