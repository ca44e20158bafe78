"""
Month keys and local-calendar date helpers

Month keys are zero-padded "YYYY-MM" strings, comparable as strings.
"""
import re
from datetime import date, datetime, time, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from app.core.error_handling import ValidationException

MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")
DEFAULT_TIMEZONE = "Asia/Jerusalem"


def parse_month(value: str) -> str:
    """Validate a month key; raises ValidationException on anything else"""
    if not isinstance(value, str) or not MONTH_RE.match(value.strip()):
        raise ValidationException(
            f"Invalid month '{value}', expected YYYY-MM",
            details={"month": value},
        )
    return value.strip()


def _split(month: str) -> Tuple[int, int]:
    year, mon = parse_month(month).split("-")
    return int(year), int(mon)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def shift_month(month: str, offset: int) -> str:
    year, mon = _split(month)
    index = year * 12 + (mon - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_bounds(month: str, tz: str = DEFAULT_TIMEZONE) -> Tuple[datetime, datetime]:
    """
    UTC instants of local midnight on the 1st of `month` and of the next month
    """
    zone = ZoneInfo(tz)
    year, mon = _split(month)
    next_year, next_mon = _split(shift_month(month, 1))
    start = datetime.combine(date(year, mon, 1), time(0), tzinfo=zone)
    end = datetime.combine(date(next_year, next_mon, 1), time(0), tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def to_local(moment: datetime, tz: str = DEFAULT_TIMEZONE) -> datetime:
    """Aware datetimes are converted; naive ones are taken as already local"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(tz))


def month_of(moment: datetime, tz: str = DEFAULT_TIMEZONE) -> str:
    return month_key(to_local(moment, tz).date())


def format_session_date(moment: Optional[datetime], tz: str = DEFAULT_TIMEZONE) -> str:
    """Display date "D/M/YY"; empty when the event has no start"""
    if moment is None:
        return ""
    local = to_local(moment, tz)
    return f"{local.day}/{local.month}/{local.year % 100:02d}"
