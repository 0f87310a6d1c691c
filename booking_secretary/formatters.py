"""Human-readable labels for API responses."""

from datetime import datetime
from typing import Optional

from booking_secretary.timeutils import UTC, get_zone


def format_event_description(duration_minutes: int) -> str:
    """Format a duration like ``90`` as ``"1 hr 30 mins"``."""
    hours, minutes = divmod(duration_minutes, 60)
    minutes_string = f"{minutes} {'mins' if minutes > 1 else 'min'}"
    hours_string = f"{hours} {'hrs' if hours > 1 else 'hr'}"

    if hours == 0:
        return minutes_string
    if minutes == 0:
        return hours_string
    return f"{hours_string} {minutes_string}"


def format_timezone_offset(timezone: str, at: Optional[datetime] = None) -> str:
    """Short UTC offset of ``timezone`` at ``at`` (default now), e.g. ``"+02:00"``."""
    moment = (at or datetime.now(UTC)).astimezone(get_zone(timezone))
    offset = moment.strftime("%z")
    return f"{offset[:3]}:{offset[3:]}"


def format_slot_label(instant: datetime, timezone: str) -> str:
    """Display form of a slot in the viewer's timezone."""
    local = instant.astimezone(get_zone(timezone))
    return local.strftime("%A, %B %d at %H:%M")
