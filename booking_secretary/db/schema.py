"""PostgreSQL schema for the booking engine."""

from typing import Any

from booking_secretary.models import DAYS_OF_WEEK_IN_ORDER

_DAY_NAMES = ", ".join(f"'{day.value}'" for day in DAYS_OF_WEEK_IN_ORDER)


def initialize_events_schema(cur: Any) -> None:
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            owner_id TEXT NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            duration_minutes INTEGER NOT NULL
                CHECK (duration_minutes > 0 AND duration_minutes <= 720),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """
    )


def initialize_schedule_schema(cur: Any) -> None:
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS schedules (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            owner_id TEXT NOT NULL UNIQUE,
            timezone TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """
    )
    cur.execute(
        f"""
        CREATE TABLE IF NOT EXISTS schedule_availabilities (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            schedule_id UUID NOT NULL REFERENCES schedules(id) ON DELETE CASCADE,
            day_of_week TEXT NOT NULL CHECK (day_of_week IN ({_DAY_NAMES})),
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            position INTEGER NOT NULL DEFAULT 0
        )
        """
    )


def initialize_meetings_schema(cur: Any) -> None:
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS meetings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_id UUID NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            owner_id TEXT NOT NULL,
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ NOT NULL,
            guest_name TEXT NOT NULL,
            guest_email TEXT NOT NULL,
            guest_notes TEXT,
            timezone TEXT NOT NULL,
            calendar_event_id TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """
    )


def create_indexes(cur: Any) -> None:
    cur.execute("CREATE INDEX IF NOT EXISTS idx_events_owner ON events(owner_id)")
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_availabilities_schedule "
        "ON schedule_availabilities(schedule_id)"
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_meetings_owner_start "
        "ON meetings(owner_id, start_time)"
    )


def initialize_schema(cur: Any) -> None:
    initialize_events_schema(cur)
    initialize_schedule_schema(cur)
    initialize_meetings_schema(cur)
    create_indexes(cur)
