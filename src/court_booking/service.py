from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Protocol

from aws_lambda_powertools import Logger

from .admission import AdmissionController
from .availability import AvailabilityChecker
from .catalog import Catalog
from .ledger import InventoryLedger
from .locks import KeyedLocks
from .models import (
    AvailabilityCheck,
    Booking,
    BookingCreate,
    BookingRequest,
    PriceCalculation,
    TimeWindow,
    WaitlistEntry,
    WaitlistJoin,
    WaitlistPosition,
)
from .pricing import PricingEngine
from .waitlist import WaitlistManager

logger = Logger()


class BookingRecorder(Protocol):
    def put_booking(self, booking: Booking) -> None: ...

    def put_waitlist_entry(self, entry: WaitlistEntry) -> None: ...

    def delete_waitlist_entry(self, entry_id: str) -> None: ...


class EventPublisher(Protocol):
    def publish_promotion(self, entry: WaitlistEntry, booking: Booking) -> None: ...

    def publish_expiry(self, entry: WaitlistEntry) -> None: ...

    def publish_cancellation(self, booking: Booking) -> None: ...


class FacilityService:
    """Entry point for everything outside the booking core.

    Wires ledger, checker, pricing, admission and waitlist together, writes
    every state change through to the recorder and hands notification
    decisions to the publisher. Both collaborators are optional so the core
    can run purely in memory.
    """

    def __init__(
        self,
        catalog: Catalog,
        *,
        recorder: BookingRecorder | None = None,
        publisher: EventPublisher | None = None,
        clock: Callable[[], datetime] = datetime.now,
        lock_timeout: float | None = None,
    ) -> None:
        self.catalog = catalog
        self._recorder = recorder
        self._publisher = publisher
        self._clock = clock

        locks = KeyedLocks(lock_timeout)
        self.ledger = InventoryLedger(catalog.equipment_types, locks)
        self.availability = AvailabilityChecker(catalog, self.ledger)
        self.pricing = PricingEngine(catalog)
        self.admission = AdmissionController(catalog, self.ledger, self.pricing, clock)
        self.waitlist = WaitlistManager(self.admission, locks, clock)

        # order matters: the cancellation is recorded before a promotion reuses the slot
        self.admission.subscribe(self._on_cancelled)
        self.admission.subscribe(self.waitlist.on_booking_cancelled)
        self.waitlist.subscribe(self._on_promoted)

    def check_availability(self, request: BookingRequest) -> AvailabilityCheck:
        return self.availability.check(request)

    def calculate_price(self, request: BookingRequest) -> PriceCalculation:
        return self.pricing.calculate(request)

    def create_booking(self, create: BookingCreate) -> Booking:
        booking = self.admission.admit(create)
        if self._recorder:
            self._recorder.put_booking(booking)
        return booking

    def cancel_booking(self, booking_id: str) -> Booking:
        return self.admission.cancel(booking_id)

    def get_booking(self, booking_id: str) -> Booking:
        return self.admission.get(booking_id)

    def list_bookings(self, user_id: str | None = None) -> list[Booking]:
        return self.admission.list_bookings(user_id)

    def join_waitlist(self, join: WaitlistJoin) -> WaitlistEntry:
        self._validate(join)
        entry = self.waitlist.join(join)
        if self._recorder:
            self._recorder.put_waitlist_entry(entry)
        return entry

    def get_waitlist_position(
        self, user_id: str, court_id: str, start_time: datetime, end_time: datetime
    ) -> WaitlistPosition:
        return self.waitlist.get_position(user_id, court_id, TimeWindow(start_time, end_time))

    def list_waitlist(self, user_id: str | None = None) -> list[WaitlistEntry]:
        return self.waitlist.list_entries(user_id)

    def withdraw_waitlist(self, entry_id: str) -> WaitlistEntry:
        entry = self.waitlist.withdraw(entry_id)
        if self._recorder:
            self._recorder.delete_waitlist_entry(entry_id)
            self._record_queue(entry.court_id, entry.window)
        return entry

    def expire_waitlist(self, now: datetime | None = None) -> list[WaitlistEntry]:
        expired = self.waitlist.expire_started(now or self._clock())
        for entry in expired:
            if self._recorder:
                self._recorder.put_waitlist_entry(entry)
            if self._publisher:
                self._publisher.publish_expiry(entry)
        return expired

    def restore(self, bookings: Iterable[Booking], entries: Iterable[WaitlistEntry]) -> None:
        """Rebuild in-memory state from persisted records, oldest booking first."""
        restored = sorted(bookings, key=lambda b: b.created_at)
        for booking in restored:
            self.admission.restore(booking)
        self.waitlist.restore(entries)
        logger.info("State restored", extra={"bookings": len(restored)})

    def _validate(self, request: BookingRequest) -> None:
        """Raise InvalidWindow or NotFound before anything is queued."""
        _ = request.window
        self.catalog.court(request.court_id)
        if request.coach_id is not None:
            self.catalog.coach(request.coach_id)

    def _on_cancelled(self, booking: Booking) -> None:
        if self._recorder:
            self._recorder.put_booking(booking)
        if self._publisher:
            self._publisher.publish_cancellation(booking)

    def _on_promoted(self, entry: WaitlistEntry, booking: Booking) -> None:
        if self._recorder:
            self._recorder.put_booking(booking)
            self._recorder.put_waitlist_entry(entry)
            self._record_queue(entry.court_id, entry.window)
        if self._publisher:
            self._publisher.publish_promotion(entry, booking)

    def _record_queue(self, court_id: str, window: TimeWindow) -> None:
        # positions behind a departed entry have shifted
        for queued in self.waitlist.queued(court_id, window):
            self._recorder.put_waitlist_entry(queued)  # type: ignore[union-attr]
