"""Schedule and weekly availability queries."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from psycopg.rows import dict_row

from booking_secretary.db.types import DatabaseInterface
from booking_secretary.models import DayOfWeek, Schedule, WeeklyAvailabilityRule


def _rule_from_row(row: dict[str, Any]) -> WeeklyAvailabilityRule:
    return WeeklyAvailabilityRule(
        day_of_week=DayOfWeek.from_string(row["day_of_week"]),
        start_time=row["start_time"],
        end_time=row["end_time"],
    )


def get_schedule(db: DatabaseInterface, owner_id: str) -> Optional[Schedule]:
    """Fetch an owner's schedule together with its availability rules."""
    with db.connection() as conn:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id, owner_id, timezone, created_at, updated_at
                FROM schedules
                WHERE owner_id = %s
                """,
                (owner_id,),
            )
            row = cur.fetchone()
            if not row:
                return None

            cur.execute(
                """
                SELECT day_of_week, start_time, end_time
                FROM schedule_availabilities
                WHERE schedule_id = %s
                ORDER BY position
                """,
                (row["id"],),
            )
            rules = [_rule_from_row(r) for r in cur.fetchall()]

    return Schedule(
        id=str(row["id"]),
        owner_id=row["owner_id"],
        timezone=row["timezone"],
        rules=rules,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def replace_schedule(
    db: DatabaseInterface,
    owner_id: str,
    timezone: str,
    rules: Sequence[WeeklyAvailabilityRule],
) -> Schedule:
    """Upsert the schedule and replace all of its rules as one transaction.

    Readers never see a half-replaced rule set.
    """
    with db.connection() as conn:
        with conn.transaction():
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    INSERT INTO schedules (owner_id, timezone)
                    VALUES (%s, %s)
                    ON CONFLICT (owner_id) DO UPDATE SET
                        timezone = EXCLUDED.timezone,
                        updated_at = NOW()
                    RETURNING id, created_at, updated_at
                    """,
                    (owner_id, timezone),
                )
                row = cur.fetchone()
                schedule_id = row["id"]

                cur.execute(
                    "DELETE FROM schedule_availabilities WHERE schedule_id = %s",
                    (schedule_id,),
                )

                if rules:
                    cur.executemany(
                        """
                        INSERT INTO schedule_availabilities
                            (schedule_id, day_of_week, start_time, end_time, position)
                        VALUES (%s, %s, %s, %s, %s)
                        """,
                        [
                            (
                                schedule_id,
                                rule.day_of_week.value,
                                rule.start_time,
                                rule.end_time,
                                position,
                            )
                            for position, rule in enumerate(rules)
                        ],
                    )

    return Schedule(
        id=str(schedule_id),
        owner_id=owner_id,
        timezone=timezone,
        rules=list(rules),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
