"""Event type queries."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from psycopg.rows import dict_row

from booking_secretary.db.types import DatabaseInterface
from booking_secretary.models import Event

_EVENT_COLUMNS = (
    "id, owner_id, name, description, duration_minutes, is_active, "
    "created_at, updated_at"
)


def _is_uuid(value: Optional[str]) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _event_from_row(row: dict[str, Any]) -> Event:
    return Event(
        id=str(row["id"]),
        owner_id=row["owner_id"],
        name=row["name"],
        description=row["description"],
        duration_minutes=row["duration_minutes"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def create_event(db: DatabaseInterface, event: Event) -> Event:
    with db.connection() as conn:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                INSERT INTO events (owner_id, name, description, duration_minutes, is_active)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {_EVENT_COLUMNS}
                """,
                (
                    event.owner_id,
                    event.name,
                    event.description,
                    event.duration_minutes,
                    event.is_active,
                ),
            )
            row = cur.fetchone()
        conn.commit()
    return _event_from_row(row)


def update_event(db: DatabaseInterface, event: Event) -> Optional[Event]:
    if not _is_uuid(event.id):
        return None

    with db.connection() as conn:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                UPDATE events SET
                    name = %s,
                    description = %s,
                    duration_minutes = %s,
                    is_active = %s,
                    updated_at = NOW()
                WHERE id = %s::uuid AND owner_id = %s
                RETURNING {_EVENT_COLUMNS}
                """,
                (
                    event.name,
                    event.description,
                    event.duration_minutes,
                    event.is_active,
                    event.id,
                    event.owner_id,
                ),
            )
            row = cur.fetchone()
        conn.commit()
    return _event_from_row(row) if row else None


def delete_event(db: DatabaseInterface, owner_id: str, event_id: str) -> bool:
    if not _is_uuid(event_id):
        return False

    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "DELETE FROM events WHERE id = %s::uuid AND owner_id = %s",
                (event_id, owner_id),
            )
            deleted = cur.rowcount
        conn.commit()
    return deleted > 0


def get_event(db: DatabaseInterface, owner_id: str, event_id: str) -> Optional[Event]:
    if not _is_uuid(event_id):
        return None

    with db.connection() as conn:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_EVENT_COLUMNS}
                FROM events
                WHERE id = %s::uuid AND owner_id = %s
                """,
                (event_id, owner_id),
            )
            row = cur.fetchone()
    return _event_from_row(row) if row else None


def list_events(
    db: DatabaseInterface, owner_id: str, active_only: bool = False
) -> list[Event]:
    """List an owner's events ordered case-insensitively by name."""
    query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE owner_id = %s"
    if active_only:
        query += " AND is_active = TRUE"
    query += " ORDER BY lower(name)"

    with db.connection() as conn:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, (owner_id,))
            return [_event_from_row(row) for row in cur.fetchall()]
