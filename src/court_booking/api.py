from __future__ import annotations

from functools import lru_cache

from aws_lambda_powertools import Logger, Tracer
from aws_lambda_powertools.metrics import Metrics, MetricUnit
from fastapi import Depends, FastAPI, HTTPException
from pydantic import NaiveDatetime
from starlette.responses import Response

from court_booking import dal, notifier
from court_booking.errors import (
    AlreadyCancelled,
    BookingError,
    InsufficientCapacity,
    InvalidWindow,
    NotFound,
    ResourceBusy,
)
from court_booking.models import (
    AvailabilityCheck,
    Booking,
    BookingCreate,
    BookingRequest,
    PriceCalculation,
    WaitlistEntry,
    WaitlistJoin,
    WaitlistJoinResult,
    WaitlistPosition,
)
from court_booking.service import FacilityService

logger = Logger()
tracer = Tracer()
metrics = Metrics(namespace="CourtBooking")

app = FastAPI(title="Court Booking Engine", version="0.1.0")


@lru_cache(maxsize=1)
def get_service() -> FacilityService:
    service = FacilityService(dal.load_catalog(), recorder=dal, publisher=notifier)
    service.restore(dal.list_bookings(), dal.list_waitlist_entries())
    return service


def _http_error(exc: BookingError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InsufficientCapacity):
        return HTTPException(status_code=409, detail=exc.reason)
    if isinstance(exc, AlreadyCancelled):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, InvalidWindow):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ResourceBusy):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@tracer.capture_method
@app.post("/availability", response_model=AvailabilityCheck)
def check_availability(payload: BookingRequest, service: FacilityService = Depends(get_service)) -> AvailabilityCheck:
    try:
        return service.check_availability(payload)
    except BookingError as exc:
        raise _http_error(exc) from exc


@tracer.capture_method
@app.post("/pricing", response_model=PriceCalculation)
def calculate_price(payload: BookingRequest, service: FacilityService = Depends(get_service)) -> PriceCalculation:
    try:
        return service.calculate_price(payload)
    except BookingError as exc:
        raise _http_error(exc) from exc


@tracer.capture_method
@app.post("/bookings", response_model=Booking, status_code=201)
def create_booking(payload: BookingCreate, service: FacilityService = Depends(get_service)) -> Booking:
    try:
        booking = service.create_booking(payload)
    except InsufficientCapacity as exc:
        metrics.add_metric(name="BookingRejected", value=1, unit=MetricUnit.Count)
        raise _http_error(exc) from exc
    except BookingError as exc:
        raise _http_error(exc) from exc
    metrics.add_metric(name="BookingConfirmed", value=1, unit=MetricUnit.Count)
    return booking


@tracer.capture_method
@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str, service: FacilityService = Depends(get_service)) -> Booking:
    try:
        return service.get_booking(booking_id)
    except BookingError as exc:
        raise _http_error(exc) from exc


@tracer.capture_method
@app.get("/users/{user_id}/bookings", response_model=list[Booking])
def list_bookings(user_id: str, service: FacilityService = Depends(get_service)) -> list[Booking]:
    return service.list_bookings(user_id)


@tracer.capture_method
@app.post("/bookings/{booking_id}/cancel", response_model=Booking)
def cancel_booking(booking_id: str, service: FacilityService = Depends(get_service)) -> Booking:
    try:
        booking = service.cancel_booking(booking_id)
    except BookingError as exc:
        raise _http_error(exc) from exc
    metrics.add_metric(name="BookingCancelled", value=1, unit=MetricUnit.Count)
    return booking


@tracer.capture_method
@app.post("/waitlist", response_model=WaitlistJoinResult, status_code=201)
def join_waitlist(payload: WaitlistJoin, service: FacilityService = Depends(get_service)) -> WaitlistJoinResult:
    try:
        entry = service.join_waitlist(payload)
    except BookingError as exc:
        raise _http_error(exc) from exc
    metrics.add_metric(name="WaitlistJoined", value=1, unit=MetricUnit.Count)
    return WaitlistJoinResult(waitlist_id=entry.id, position=entry.position)


@tracer.capture_method
@app.get("/waitlist/position", response_model=WaitlistPosition)
def get_waitlist_position(
    user_id: str,
    court_id: str,
    start_time: NaiveDatetime,
    end_time: NaiveDatetime,
    service: FacilityService = Depends(get_service),
) -> WaitlistPosition:
    try:
        return service.get_waitlist_position(user_id, court_id, start_time, end_time)
    except BookingError as exc:
        raise _http_error(exc) from exc


@tracer.capture_method
@app.get("/waitlist", response_model=list[WaitlistEntry])
def list_waitlist(service: FacilityService = Depends(get_service)) -> list[WaitlistEntry]:
    return service.list_waitlist()


@tracer.capture_method
@app.get("/users/{user_id}/waitlist", response_model=list[WaitlistEntry])
def list_user_waitlist(user_id: str, service: FacilityService = Depends(get_service)) -> list[WaitlistEntry]:
    return service.list_waitlist(user_id)


@tracer.capture_method
@app.delete("/waitlist/{entry_id}")
def withdraw_waitlist(entry_id: str, service: FacilityService = Depends(get_service)) -> Response:
    try:
        service.withdraw_waitlist(entry_id)
    except BookingError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@tracer.capture_method
@app.post("/waitlist/expire", response_model=list[WaitlistEntry])
def expire_waitlist(now: NaiveDatetime | None = None, service: FacilityService = Depends(get_service)) -> list[WaitlistEntry]:
    expired = service.expire_waitlist(now)
    if expired:
        metrics.add_metric(name="WaitlistExpired", value=len(expired), unit=MetricUnit.Count)
    return expired
