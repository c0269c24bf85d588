from __future__ import annotations

import json
import os
from typing import Any

import boto3
from aws_lambda_powertools import Logger

from .models import Booking, WaitlistEntry

logger = Logger()

_EVENT_BUS_NAME = os.environ.get("EVENT_BUS_NAME", "default")

_events = boto3.client("events")

WAITLIST_SOURCE = "court-booking.waitlist"
BOOKINGS_SOURCE = "court-booking.bookings"


def _emit(source: str, detail_type: str, detail: dict[str, Any]) -> None:
    # Delivery (email, push) is left to whoever subscribes on the bus
    detail = {"version": "1.0", "type": detail_type, **detail}
    logger.info("Emitting notification event", extra=detail)
    _events.put_events(
        Entries=[
            {
                "Source": source,
                "DetailType": detail_type,
                "Detail": json.dumps(detail),
                "EventBusName": _EVENT_BUS_NAME,
            }
        ]
    )


def publish_promotion(entry: WaitlistEntry, booking: Booking) -> None:
    _emit(
        WAITLIST_SOURCE,
        "WaitlistPromoted",
        {
            "entry_id": entry.id,
            "user_id": entry.user_id,
            "booking_id": booking.id,
            "court_id": booking.court_id,
            "start_time": booking.start_time.isoformat(),
            "end_time": booking.end_time.isoformat(),
            "total_price": str(booking.total_price),
        },
    )


def publish_expiry(entry: WaitlistEntry) -> None:
    _emit(
        WAITLIST_SOURCE,
        "WaitlistExpired",
        {
            "entry_id": entry.id,
            "user_id": entry.user_id,
            "court_id": entry.court_id,
            "start_time": entry.start_time.isoformat(),
            "end_time": entry.end_time.isoformat(),
        },
    )


def publish_cancellation(booking: Booking) -> None:
    _emit(
        BOOKINGS_SOURCE,
        "BookingCancelled",
        {
            "booking_id": booking.id,
            "user_id": booking.user_id,
            "court_id": booking.court_id,
            "start_time": booking.start_time.isoformat(),
            "end_time": booking.end_time.isoformat(),
        },
    )
