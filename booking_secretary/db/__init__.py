from booking_secretary.db.types import DatabaseInterface, MeetingPublisher

__all__ = ["DatabaseInterface", "MeetingPublisher"]
