from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from datetime import datetime

from aws_lambda_powertools import Logger

from .catalog import Catalog
from .errors import AlreadyCancelled, InsufficientCapacity, NotFound
from .ledger import Claim, InventoryLedger, Reservation, ResourceRef
from .models import Booking, BookingCreate, BookingRequest
from .pricing import PricingEngine

logger = Logger()

CancellationListener = Callable[[Booking], None]


def claims_for(request: BookingRequest) -> list[Claim]:
    claims = [Claim(ResourceRef("court", request.court_id))]
    if request.coach_id is not None:
        claims.append(Claim(ResourceRef("coach", request.coach_id)))
    if request.racket_count:
        claims.append(Claim(ResourceRef("equipment", "racket"), request.racket_count))
    if request.shoes_count:
        claims.append(Claim(ResourceRef("equipment", "shoes"), request.shoes_count))
    return claims


class AdmissionController:
    """Confirms or rejects booking requests and cancels confirmed bookings.

    A booking goes ``confirmed -> cancelled`` and nowhere else. Rejection is
    reported as ``InsufficientCapacity``; the controller never enqueues on the
    waitlist itself. Listeners registered with ``subscribe`` run after every
    successful cancellation, once the freed capacity is back in the ledger; a
    failing listener does not stop the ones after it.
    """

    def __init__(
        self,
        catalog: Catalog,
        ledger: InventoryLedger,
        pricing: PricingEngine,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger
        self._pricing = pricing
        self._clock = clock
        self._guard = threading.Lock()
        self._bookings: dict[str, Booking] = {}
        self._reservations: dict[str, list[Reservation]] = {}
        self._listeners: list[CancellationListener] = []

    def subscribe(self, listener: CancellationListener) -> None:
        self._listeners.append(listener)

    def get(self, booking_id: str) -> Booking:
        try:
            return self._bookings[booking_id]
        except KeyError as exc:
            raise NotFound("booking", booking_id) from exc

    def list_bookings(self, user_id: str | None = None) -> list[Booking]:
        bookings = [b for b in tuple(self._bookings.values()) if user_id is None or b.user_id == user_id]
        return sorted(bookings, key=lambda b: b.start_time, reverse=True)

    def admit(self, create: BookingCreate) -> Booking:
        window = create.window
        court = self._catalog.court(create.court_id)
        if court.status != "available":
            raise InsufficientCapacity("court_unavailable")
        if create.coach_id is not None and self._catalog.coach(create.coach_id).status != "available":
            raise InsufficientCapacity("coach_unavailable")

        price = self._pricing.calculate(create)
        booking_id = str(uuid.uuid4())
        try:
            reservations = self._ledger.reserve_all(claims_for(create), window, holder=booking_id)
        except InsufficientCapacity as exc:
            logger.info(
                "Booking rejected",
                extra={"court_id": create.court_id, "user_id": create.user_id, "reason": exc.reason},
            )
            raise

        booking = Booking(
            id=booking_id,
            user_id=create.user_id,
            court_id=create.court_id,
            coach_id=create.coach_id,
            start_time=create.start_time,
            end_time=create.end_time,
            racket_count=create.racket_count,
            shoes_count=create.shoes_count,
            base_price=price.base_price,
            pricing_modifiers=price.pricing_modifiers,
            equipment_fee=price.equipment_fee,
            coach_fee=price.coach_fee,
            total_price=price.total_price,
            status="confirmed",
            created_at=self._clock(),
        )
        with self._guard:
            self._bookings[booking_id] = booking
            self._reservations[booking_id] = reservations
        logger.info(
            "Booking confirmed",
            extra={"booking_id": booking_id, "court_id": booking.court_id, "total_price": str(booking.total_price)},
        )
        return booking

    def cancel(self, booking_id: str) -> Booking:
        with self._guard:
            booking = self.get(booking_id)
            if booking.status == "cancelled":
                raise AlreadyCancelled(booking_id)
            self._ledger.release_all(self._reservations.get(booking_id, []))
            self._reservations.pop(booking_id, None)
            cancelled = booking.model_copy(update={"status": "cancelled"})
            self._bookings[booking_id] = cancelled
        logger.info("Booking cancelled", extra={"booking_id": booking_id, "court_id": cancelled.court_id})

        # the cancellation is already committed: every listener gets its turn,
        # then the first failure is re-raised
        failures: list[Exception] = []
        for listener in self._listeners:
            try:
                listener(cancelled)
            except Exception as exc:
                logger.exception("Cancellation listener failed", extra={"booking_id": booking_id})
                failures.append(exc)
        if failures:
            raise failures[0]
        return cancelled

    def restore(self, booking: Booking) -> None:
        """Reload a persisted booking, re-reserving capacity if it is confirmed."""
        reservations: list[Reservation] = []
        if booking.status == "confirmed":
            reservations = self._ledger.restore_all(claims_for(booking_request(booking)), booking.window, holder=booking.id)
        with self._guard:
            self._bookings[booking.id] = booking
            if reservations:
                self._reservations[booking.id] = reservations


def booking_request(booking: Booking) -> BookingRequest:
    return BookingRequest(
        court_id=booking.court_id,
        start_time=booking.start_time,
        end_time=booking.end_time,
        coach_id=booking.coach_id,
        racket_count=booking.racket_count,
        shoes_count=booking.shoes_count,
    )
