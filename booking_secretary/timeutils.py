"""Wall-clock and instant conversions used by the availability engine.

Two representations are kept apart on purpose:

* fractional hours (``time_of_day_to_fraction``) are only ever compared with
  each other to order rules on the same day;
* absolute instants are produced with ``zoneinfo`` so every date gets the UTC
  offset its zone defines for it.
"""

import re
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_secretary.models import DayOfWeek

UTC = dt_timezone.utc

TIME_OF_DAY_PATTERN = re.compile(r"^([0-9]|0[0-9]|1[0-9]|2[0-3]):([0-5][0-9])$")


def is_valid_time_of_day(value: str) -> bool:
    """Check that ``value`` is an ``HH:MM`` (or ``H:MM``) 24-hour time."""
    return isinstance(value, str) and bool(TIME_OF_DAY_PATTERN.match(value))


def parse_time_of_day(value: Union[str, time]) -> time:
    """Parse ``HH:MM`` into a ``datetime.time``.

    Raises:
        ValueError: If the string is not a valid 24-hour time.
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)

    match = TIME_OF_DAY_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Time '{value}' must be in HH:MM format (e.g., 09:00)")
    return time(int(match.group(1)), int(match.group(2)))


def time_of_day_to_fraction(value: str) -> float:
    """Convert ``"09:15"`` into ``9.25``.

    Only meant for ordering comparisons between times of the same day.
    """
    hours, minutes = value.split(":")
    return int(hours) + int(minutes) / 60


def get_zone(name: str) -> ZoneInfo:
    """Load an IANA timezone.

    Raises:
        ValueError: If the zone name is empty or unknown.
    """
    if not name:
        raise ValueError("Timezone is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(
            f"Invalid timezone '{name}'. Must be a valid IANA timezone "
            "(e.g., 'America/Los_Angeles')"
        ) from e


def is_valid_timezone(name: str) -> bool:
    try:
        get_zone(name)
    except ValueError:
        return False
    return True


def ensure_aware(instant: datetime) -> datetime:
    """Return ``instant`` with a tzinfo; naive values are read as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant


def to_utc(instant: datetime) -> datetime:
    return ensure_aware(instant).astimezone(UTC)


def local_time_to_instant(
    day: date, time_of_day: Union[str, time], timezone: str
) -> datetime:
    """Combine a calendar date and a wall-clock time in ``timezone``.

    The result is normalised to UTC. Wall-clock times inside a DST gap or
    overlap take the offset zoneinfo assigns with ``fold=0``.
    """
    zone = get_zone(timezone)
    local = datetime.combine(day, parse_time_of_day(time_of_day), tzinfo=zone)
    return local.astimezone(UTC)


def local_date_of(instant: datetime, timezone: str) -> date:
    """Calendar date of ``instant`` as seen on a wall clock in ``timezone``."""
    return ensure_aware(instant).astimezone(get_zone(timezone)).date()


def day_of_week_of(day: date) -> DayOfWeek:
    return DayOfWeek.from_weekday(day.weekday())


def ceil_to_step(instant: datetime, step_minutes: int) -> datetime:
    """Round ``instant`` up to the next ``step_minutes`` boundary of the hour.

    Instants already on a boundary (with zero seconds) are returned unchanged.
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")

    instant = ensure_aware(instant)
    floored = instant.replace(
        minute=instant.minute - instant.minute % step_minutes,
        second=0,
        microsecond=0,
    )
    if floored == instant:
        return instant
    return floored + timedelta(minutes=step_minutes)


def parse_instant(value: str, default_timezone: str = "UTC") -> datetime:
    """Parse an ISO-8601 / RFC 3339 timestamp.

    Naive timestamps are interpreted in ``default_timezone``. A bare date is
    read as midnight in that zone.
    """
    normalized = value.strip()
    if "T" not in normalized and " " not in normalized:
        normalized = f"{normalized}T00:00:00"
    normalized = normalized.replace("Z", "+00:00")
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=get_zone(default_timezone))
    return parsed


def to_rfc3339(instant: datetime) -> str:
    """Format an instant the way the Google APIs expect (UTC, ``Z`` suffix)."""
    return to_utc(instant).strftime("%Y-%m-%dT%H:%M:%SZ")
