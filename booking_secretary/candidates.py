"""Candidate start instants fed to the slot resolver.

The step size fixes the booking granularity: with the default 15 minute step a
guest can only start meetings at :00, :15, :30 and :45.
"""

from datetime import datetime, time, timedelta
from typing import List, Optional

from booking_secretary.timeutils import UTC, ceil_to_step, get_zone

DEFAULT_STEP_MINUTES = 15
DEFAULT_HORIZON_YEARS = 1


def _add_years(instant: datetime, years: int) -> datetime:
    try:
        return instant.replace(year=instant.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return instant.replace(year=instant.year + years, day=28)


def horizon_end(start: datetime, timezone: str, years: int) -> datetime:
    """Last instant of the local day ``years`` after ``start``."""
    zone = get_zone(timezone)
    local_end_day = _add_years(start.astimezone(zone), years).date()
    return datetime.combine(local_end_day, time.max, tzinfo=zone).astimezone(UTC)


def generate_candidates(
    now: Optional[datetime] = None,
    timezone: str = "UTC",
    step_minutes: int = DEFAULT_STEP_MINUTES,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
) -> List[datetime]:
    """Enumerate candidate instants from ``now`` through the horizon.

    Starts at ``now`` rounded up to the next ``step_minutes`` boundary and ends
    with the last step at or before the end of the day ``horizon_years`` later
    (end of day in ``timezone``). All instants are UTC.
    """
    if now is None:
        now = datetime.now(UTC)
    start = ceil_to_step(now, step_minutes).astimezone(UTC)
    end = horizon_end(start, timezone, horizon_years)
    step = timedelta(minutes=step_minutes)

    candidates: List[datetime] = []
    current = start
    while current <= end:
        candidates.append(current)
        current += step
    return candidates
