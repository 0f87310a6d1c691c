"""Tests for candidate instant generation."""

from datetime import datetime, timedelta, timezone

from booking_secretary.candidates import generate_candidates, horizon_end

UTC = timezone.utc


def test_candidates_start_on_next_step():
    now = datetime(2030, 1, 7, 9, 7, tzinfo=UTC)
    candidates = generate_candidates(now=now, timezone="UTC", step_minutes=15)

    assert candidates[0] == datetime(2030, 1, 7, 9, 15, tzinfo=UTC)
    assert candidates[1] - candidates[0] == timedelta(minutes=15)
    assert all(c.tzinfo is not None for c in candidates[:10])


def test_candidates_cover_one_year_inclusive():
    now = datetime(2030, 1, 7, 0, 0, tzinfo=UTC)
    candidates = generate_candidates(now=now, timezone="UTC", step_minutes=30)

    assert candidates[0] == now
    assert candidates[-1] == datetime(2031, 1, 7, 23, 30, tzinfo=UTC)
    assert len(candidates) == (365 + 1) * 48


def test_horizon_ends_at_owner_local_midnight():
    start = datetime(2030, 1, 7, 12, 0, tzinfo=UTC)
    end = horizon_end(start, "America/New_York", 1)
    assert end.replace(microsecond=0) == datetime(2031, 1, 8, 4, 59, 59, tzinfo=UTC)


def test_horizon_from_leap_day():
    start = datetime(2028, 2, 29, 12, 0, tzinfo=UTC)
    end = horizon_end(start, "UTC", 1)
    assert end.date().isoformat() == "2029-02-28"
