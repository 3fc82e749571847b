"""
shared/utils/formatting.py
Human-readable date/time rendering for notification messages,
slot end-time arithmetic, and the static subject → location lookup.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from config.settings import settings
from shared.utils.exceptions import ValidationError


# Subject-name prefix (lowercase) → where accepted sessions take place.
SUBJECT_LOCATIONS = {
    "math": "Hume Hall 324 or 326",
    "csci": "Weir Hall 234",
}


def format_date(value: date) -> str:
    """date(2025, 10, 27) → 'Oct 27, 2025'."""
    return f"{value:%b} {value.day}, {value.year}"


def format_time(value: time) -> str:
    """time(13, 0) → '1:00 PM'."""
    hour = (value.hour + 11) % 12 + 1
    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{hour}:{value.minute:02d} {suffix}"


def parse_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date '{value}'. Use YYYY-MM-DD") from None


def parse_time(value: Union[time, str]) -> time:
    """'14:00' or time(14, 0) → time(14, 0), seconds dropped."""
    if not isinstance(value, time):
        try:
            value = time.fromisoformat(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid time '{value}'. Use HH:MM") from None
    return value.replace(second=0, microsecond=0)


def slot_end_time(start: time, minutes: Optional[int] = None) -> time:
    """
    End of a slot starting at `start`.
    Wraps past midnight: 23:30 + 1h → 00:30.
    """
    duration = timedelta(minutes=minutes or settings.SLOT_DURATION_MINUTES)
    return (datetime.combine(date.min, start) + duration).time()


def location_for_subject(subject_name: Optional[str]) -> str:
    """Returns '' when the subject has no fixed location."""
    if not subject_name:
        return ""
    name = subject_name.lower()
    for prefix, location in SUBJECT_LOCATIONS.items():
        if name.startswith(prefix):
            return location
    return ""
