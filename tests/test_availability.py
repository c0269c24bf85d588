from __future__ import annotations

from datetime import datetime

import pytest
from factories import MONDAY_9, MONDAY_10, MONDAY_11, coach_factory, court_factory, create_factory, request_factory

from court_booking.catalog import Catalog
from court_booking.errors import NotFound
from court_booking.service import FacilityService


def test_free_court_is_available(service: FacilityService) -> None:
    check = service.check_availability(request_factory(racket_count=1, shoes_count=2))
    assert check.available
    assert check.court_available
    assert check.coach_available
    assert check.rackets_available == 2
    assert check.shoes_available == 4


def test_booked_court_is_unavailable(service: FacilityService) -> None:
    service.create_booking(create_factory())

    check = service.check_availability(request_factory())
    assert not check.available
    assert not check.court_available

    adjacent = service.check_availability(request_factory(start_time=MONDAY_10, end_time=MONDAY_11))
    assert adjacent.available


def test_busy_coach_on_another_court(service: FacilityService) -> None:
    service.create_booking(create_factory(coach_id="coach-1"))

    check = service.check_availability(request_factory(court_id="c-2", coach_id="coach-1"))
    assert check.court_available
    assert not check.coach_available
    assert not check.available


def test_short_equipment_makes_request_unavailable(service: FacilityService) -> None:
    check = service.check_availability(request_factory(racket_count=3))
    assert check.court_available
    assert check.rackets_available == 2
    assert not check.available


def test_cancelled_booking_frees_court(service: FacilityService) -> None:
    booking = service.create_booking(create_factory(racket_count=1))
    service.cancel_booking(booking.id)

    check = service.check_availability(request_factory(racket_count=2))
    assert check.available
    assert check.rackets_available == 2


def test_court_under_maintenance_is_unavailable() -> None:
    catalog = Catalog(
        courts=[court_factory(status="maintenance")],
        coaches=[coach_factory(status="unavailable")],
    )
    service = FacilityService(catalog)
    check = service.check_availability(request_factory(coach_id="coach-1"))
    assert not check.court_available
    assert not check.coach_available


def test_unknown_court(service: FacilityService) -> None:
    with pytest.raises(NotFound):
        service.check_availability(request_factory(court_id="missing"))


def test_partial_overlap_counts(service: FacilityService) -> None:
    service.create_booking(create_factory(start_time=MONDAY_9, end_time=MONDAY_11))
    check = service.check_availability(
        request_factory(start_time=datetime(2030, 1, 7, 10, 30), end_time=datetime(2030, 1, 7, 11, 30))
    )
    assert not check.court_available
