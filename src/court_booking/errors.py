from __future__ import annotations

from datetime import datetime
from typing import Literal

AdmissionFailure = Literal[
    "court_unavailable",
    "coach_unavailable",
    "insufficient_rackets",
    "insufficient_shoes",
]


class BookingError(Exception):
    """Base class for every error the booking core reports to its callers."""


class InvalidWindow(BookingError):
    def __init__(self, start: datetime, end: datetime) -> None:
        super().__init__(f"end_time {end.isoformat()} must be after start_time {start.isoformat()}")
        self.start = start
        self.end = end


class InsufficientCapacity(BookingError):
    """A court, coach or equipment pool cannot take the request.

    Recoverable: the caller may offer the waitlist instead.
    """

    def __init__(self, reason: AdmissionFailure) -> None:
        super().__init__(reason)
        self.reason: AdmissionFailure = reason


class NotFound(BookingError):
    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident


class AlreadyCancelled(BookingError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking already cancelled: {booking_id}")
        self.booking_id = booking_id


class ResourceBusy(BookingError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Timed out waiting for lock: {key}")
        self.key = key
