"""Slot resolver: filters candidate start instants down to bookable ones.

A candidate ``t`` is bookable for a meeting of ``duration`` minutes when

1. ``[t, t + duration)`` lies entirely inside one availability window of the
   owner's weekday, where the weekday and the window date are taken from the
   wall clock of ``t`` in the schedule timezone, and
2. no busy interval satisfies ``busy.start < t + duration and busy.end > t``.

Candidates are checked one by one, so each kept instant can be verified
against those two predicates on its own, including around DST changes.
"""

import bisect
import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple

from booking_secretary.availability import group_rules_by_day
from booking_secretary.models import BusyInterval, DayOfWeek, WeeklyAvailabilityRule
from booking_secretary.timeutils import (
    day_of_week_of,
    ensure_aware,
    get_zone,
    local_time_to_instant,
)

logger = logging.getLogger(__name__)

Window = Tuple[datetime, datetime]


class _BusyIndex:
    """Answers "does anything overlap [start, end)?" in O(log n).

    Intervals are sorted by start; ``_max_end[i]`` is the latest end among the
    first ``i + 1`` of them. Some interval overlaps ``[start, end)`` exactly
    when one of those with ``busy.start < end`` has ``busy.end > start``.
    """

    def __init__(self, intervals: Iterable[BusyInterval]):
        ordered = sorted(
            (ensure_aware(b.start), ensure_aware(b.end)) for b in intervals
        )
        self._starts = [start for start, _ in ordered]
        self._max_end: List[datetime] = []
        for _, end in ordered:
            if self._max_end and self._max_end[-1] > end:
                self._max_end.append(self._max_end[-1])
            else:
                self._max_end.append(end)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        count = bisect.bisect_left(self._starts, end)
        return count > 0 and self._max_end[count - 1] > start


def _usable_days(
    rules: Sequence[WeeklyAvailabilityRule],
) -> List[WeeklyAvailabilityRule]:
    """Rules whose day is a known weekday; day names are coerced to DayOfWeek."""
    usable: List[WeeklyAvailabilityRule] = []
    for rule in rules:
        day = rule.day_of_week
        if not isinstance(day, DayOfWeek):
            try:
                day = DayOfWeek.from_string(day)
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping availability rule with bad day {rule}: {e}")
                continue
            rule = replace(rule, day_of_week=day)
        usable.append(rule)
    return usable


class _DayWindows:
    """Availability windows per owner-local date, computed once per date."""

    def __init__(self, rules: Sequence[WeeklyAvailabilityRule], timezone: str):
        self._by_day = group_rules_by_day(_usable_days(rules))
        self._timezone = timezone
        self._cache: Dict[date, List[Window]] = {}

    def for_date(self, local_date: date) -> List[Window]:
        windows = self._cache.get(local_date)
        if windows is None:
            windows = []
            for rule in self._by_day[day_of_week_of(local_date)]:
                try:
                    windows.append(
                        (
                            local_time_to_instant(
                                local_date, rule.start_time, self._timezone
                            ),
                            local_time_to_instant(
                                local_date, rule.end_time, self._timezone
                            ),
                        )
                    )
                except ValueError as e:
                    logger.warning(f"Skipping malformed availability rule {rule}: {e}")
            self._cache[local_date] = windows
        return windows


def resolve_bookable_slots(
    candidates: Sequence[datetime],
    weekly_rules: Sequence[WeeklyAvailabilityRule],
    timezone: str,
    busy_intervals: Sequence[BusyInterval],
    duration_minutes: int,
) -> List[datetime]:
    """Return the candidates a meeting of ``duration_minutes`` can start at.

    Args:
        candidates: Candidate start instants, ascending. Naive values are UTC.
        weekly_rules: The owner's weekly availability rules.
        timezone: IANA timezone the rules are expressed in.
        busy_intervals: Already-booked ``[start, end)`` ranges.
        duration_minutes: Length of the meeting being booked.

    Returns:
        The order-preserving subsequence of ``candidates`` that are bookable.
        Empty when there are no candidates, no rules, or the timezone is unknown.
    """
    if not candidates:
        return []
    if not weekly_rules:
        return []

    try:
        zone = get_zone(timezone)
    except ValueError as e:
        logger.warning(f"Cannot resolve slots: {e}")
        return []

    windows = _DayWindows(weekly_rules, timezone)
    busy = _BusyIndex(busy_intervals)
    duration = timedelta(minutes=duration_minutes)

    bookable: List[datetime] = []
    for candidate in candidates:
        start = ensure_aware(candidate)
        end = start + duration
        local_date = start.astimezone(zone).date()

        fits = any(
            start >= window_start and end <= window_end
            for window_start, window_end in windows.for_date(local_date)
        )
        if fits and not busy.overlaps(start, end):
            bookable.append(candidate)

    return bookable


def is_bookable(
    instant: datetime,
    weekly_rules: Sequence[WeeklyAvailabilityRule],
    timezone: str,
    busy_intervals: Sequence[BusyInterval],
    duration_minutes: int,
) -> bool:
    """Single-candidate form of ``resolve_bookable_slots``."""
    return bool(
        resolve_bookable_slots(
            [instant], weekly_rules, timezone, busy_intervals, duration_minutes
        )
    )
