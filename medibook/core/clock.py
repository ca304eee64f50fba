"""Canonical clinic time zone and wall-clock helpers.

Appointments are stored as a calendar date plus ``HH:MM`` start/end strings.
All of them are read in a single zone (``CLINIC_TIMEZONE``).
"""

import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from medibook.config import settings
from medibook.core.exceptions import ValidationException

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def clinic_zone() -> ZoneInfo:
    """Return the canonical clinic time zone."""
    return ZoneInfo(settings.clinic_timezone)


def now() -> datetime:
    """Current moment in the clinic zone."""
    return datetime.now(clinic_zone())


def today() -> date:
    """Current calendar date in the clinic zone."""
    return now().date()


def parse_hhmm(value: str, field: str = "time") -> int:
    """
    Parse a 24-hour ``HH:MM`` string into minutes since midnight.

    Args:
        value: Wall-clock time string
        field: Name of the field reported on failure

    Returns:
        Minutes since midnight

    Raises:
        ValidationException: If the value is not a valid ``HH:MM`` time
    """
    match = _HHMM.match(value or "")
    if not match:
        raise ValidationException(
            f"{field} must be a 24-hour HH:MM time",
            details={"field": field, "value": value},
        )
    return int(match.group(1)) * 60 + int(match.group(2))


def validate_interval(start_time: str, end_time: str) -> tuple[int, int]:
    """Parse both ends of a slot and check ``start < end``."""
    start = parse_hhmm(start_time, "start_time")
    end = parse_hhmm(end_time, "end_time")
    if start >= end:
        raise ValidationException(
            "start_time must be before end_time",
            details={"field": "end_time", "start_time": start_time, "end_time": end_time},
        )
    return start, end


def normalize_date(value: date | datetime | str) -> date:
    """
    Collapse a date, date-time or ISO string to a date-only key.

    Aware date-times are converted to the clinic zone first; naive ones are
    taken to already be clinic wall-clock time.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationException(
                "date must be an ISO 8601 date",
                details={"field": "date", "value": value},
            )

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(clinic_zone())
        return value.date()

    return value


def slot_start(day: date, start_time: str) -> datetime:
    """Aware moment at which a slot starts."""
    minutes = parse_hhmm(start_time, "start_time")
    return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=clinic_zone())


def weekday_name(day: date) -> str:
    """English weekday name used by published availability."""
    return WEEKDAYS[day.weekday()]
