from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from booking_secretary.db import schema
from booking_secretary.db.types import DatabaseInterface, MeetingPublisher
from booking_secretary.db.queries import events as event_q
from booking_secretary.db.queries import meetings as meeting_q
from booking_secretary.db.queries import schedules as schedule_q
from booking_secretary.errors import SourceUnavailable
from booking_secretary.models import Event, Meeting, Schedule, WeeklyAvailabilityRule

logger = logging.getLogger(__name__)

SOURCE_NAME = "schedule_store"


class PostgresDatabase(DatabaseInterface):
    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "booking",
        user: str = "booking",
        password: str = "",
        ssl_mode: str = "prefer",
        min_size: int = 1,
        max_size: int = 10,
        connect_timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.ssl_mode = ssl_mode
        self.min_size = min_size
        self.max_size = max_size
        self.connect_timeout = connect_timeout
        self._pool: Optional[ConnectionPool] = None

    def _get_connection_string(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}?sslmode={self.ssl_mode}"

    def initialize(self) -> None:
        self._pool = ConnectionPool(
            self._get_connection_string(),
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.connect_timeout,
            open=True,
        )

        with self.connection() as conn:
            with conn.cursor() as cur:
                schema.initialize_schema(cur)
            conn.commit()
        logger.info(f"Database initialized at {self.host}:{self.port}/{self.database}")

    @contextmanager
    def connection(self) -> Iterator[Any]:
        if not self._pool:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        try:
            with self._pool.connection() as conn:
                yield conn
        except (psycopg.OperationalError, PoolTimeout) as e:
            logger.error(f"Database unavailable: {e}")
            raise SourceUnavailable(SOURCE_NAME, str(e)) from e

    def close(self) -> None:
        if self._pool:
            self._pool.close()
            self._pool = None

    def get_schedule(self, owner_id: str) -> Optional[Schedule]:
        return schedule_q.get_schedule(self, owner_id)

    def replace_schedule(
        self,
        owner_id: str,
        timezone: str,
        rules: Sequence[WeeklyAvailabilityRule],
    ) -> Schedule:
        return schedule_q.replace_schedule(self, owner_id, timezone, rules)

    def create_event(self, event: Event) -> Event:
        return event_q.create_event(self, event)

    def update_event(self, event: Event) -> Optional[Event]:
        return event_q.update_event(self, event)

    def delete_event(self, owner_id: str, event_id: str) -> bool:
        return event_q.delete_event(self, owner_id, event_id)

    def get_event(self, owner_id: str, event_id: str) -> Optional[Event]:
        return event_q.get_event(self, owner_id, event_id)

    def list_events(self, owner_id: str, active_only: bool = False) -> list[Event]:
        return event_q.list_events(self, owner_id, active_only)

    def record_meeting(self, meeting: Meeting, publish: MeetingPublisher) -> Meeting:
        return meeting_q.record_meeting(self, meeting, publish)

    def list_meetings(self, owner_id: str) -> list[Meeting]:
        return meeting_q.list_meetings(self, owner_id)


def create_database(config: Any) -> DatabaseInterface:
    postgres_config = getattr(config, "postgres", None)
    if not postgres_config:
        raise ValueError("PostgreSQL config is required (database.postgres)")

    return PostgresDatabase(
        host=postgres_config.host,
        port=postgres_config.port,
        database=postgres_config.database,
        user=postgres_config.user,
        password=postgres_config.password,
        ssl_mode=getattr(postgres_config, "ssl_mode", "prefer"),
        min_size=getattr(config, "pool_min_size", 1),
        max_size=getattr(config, "pool_max_size", 10),
        connect_timeout=getattr(config, "connect_timeout", 10.0),
    )
