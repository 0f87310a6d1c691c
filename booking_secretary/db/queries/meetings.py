"""Meeting queries."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from psycopg.rows import dict_row

from booking_secretary.db.types import DatabaseInterface, MeetingPublisher
from booking_secretary.models import Meeting


def _meeting_from_row(row: dict[str, Any]) -> Meeting:
    return Meeting(
        id=str(row["id"]),
        event_id=str(row["event_id"]),
        owner_id=row["owner_id"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        guest_name=row["guest_name"],
        guest_email=row["guest_email"],
        guest_notes=row["guest_notes"],
        timezone=row["timezone"],
        calendar_event_id=row["calendar_event_id"],
        created_at=row["created_at"],
    )


def record_meeting(
    db: DatabaseInterface, meeting: Meeting, publish: MeetingPublisher
) -> Meeting:
    """Insert a meeting and publish it to the calendar in one transaction.

    ``publish`` runs after the insert and before the commit; if it raises, the
    transaction block rolls the insert back and the error propagates. A failure
    after ``publish`` returned also rolls back; the caller removes the calendar
    event it wrote.
    """
    with db.connection() as conn:
        with conn.transaction():
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    INSERT INTO meetings (
                        event_id, owner_id, start_time, end_time, guest_name,
                        guest_email, guest_notes, timezone
                    ) VALUES (%s::uuid, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id, created_at
                    """,
                    (
                        meeting.event_id,
                        meeting.owner_id,
                        meeting.start_time,
                        meeting.end_time,
                        meeting.guest_name,
                        meeting.guest_email,
                        meeting.guest_notes,
                        meeting.timezone,
                    ),
                )
                row = cur.fetchone()
                saved = replace(meeting, id=str(row["id"]), created_at=row["created_at"])

                calendar_event_id = publish(saved)

                cur.execute(
                    "UPDATE meetings SET calendar_event_id = %s WHERE id = %s",
                    (calendar_event_id, row["id"]),
                )

    return replace(saved, calendar_event_id=calendar_event_id)


def list_meetings(db: DatabaseInterface, owner_id: str) -> list[Meeting]:
    with db.connection() as conn:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id, event_id, owner_id, start_time, end_time, guest_name,
                       guest_email, guest_notes, timezone, calendar_event_id, created_at
                FROM meetings
                WHERE owner_id = %s
                ORDER BY start_time
                """,
                (owner_id,),
            )
            return [_meeting_from_row(row) for row in cur.fetchall()]
