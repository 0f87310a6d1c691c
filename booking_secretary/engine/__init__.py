from booking_secretary.engine.database import PostgresDatabase, create_database
from booking_secretary.engine.services import (
    AvailabilityService,
    BookingService,
    EventService,
    ScheduleService,
)

__all__ = [
    "PostgresDatabase",
    "create_database",
    "AvailabilityService",
    "BookingService",
    "EventService",
    "ScheduleService",
]
