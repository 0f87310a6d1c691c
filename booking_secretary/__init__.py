"""Booking Secretary: bookable meeting times from weekly schedules and calendar busy time."""

__version__ = "0.1.0"
