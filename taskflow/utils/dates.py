from calendar import monthrange
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands timestamps back naive; they are stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def shift_months(day: date, months: int) -> date:
    """Move `day` by a number of calendar months, clamping to the month's last day."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, monthrange(year, month)[1]))


def month_bounds(day: date) -> tuple[datetime, datetime]:
    """[start of the month, start of the next month) for the month containing `day`."""
    first = day.replace(day=1)
    return start_of_day(first), start_of_day(shift_months(first, 1))


def week_start(day: date, week_start_day: int) -> date:
    return day - timedelta(days=(day.weekday() - week_start_day) % 7)


def days_of_week(day: date, week_start_day: int) -> list[date]:
    first = week_start(day, week_start_day)
    return [first + timedelta(days=offset) for offset in range(7)]
