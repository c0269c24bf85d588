from __future__ import annotations

import threading
from datetime import datetime

import pytest
from factories import MONDAY_9, MONDAY_10, MONDAY_11, court_factory, create_factory, default_equipment, join_factory

from court_booking.catalog import Catalog
from court_booking.errors import InvalidWindow, NotFound
from court_booking.models import TimeWindow, WaitlistEntry
from court_booking.service import FacilityService

SLOT = TimeWindow(MONDAY_9, MONDAY_10)


def positions(service: FacilityService, window: TimeWindow = SLOT, court_id: str = "c-1") -> list[int]:
    return [e.position for e in service.waitlist.queued(court_id, window)]


def test_full_court_then_join_gets_position_one(service: FacilityService) -> None:
    service.create_booking(create_factory())

    check = service.check_availability(create_factory(user_id="u-2"))
    assert not check.available
    assert not check.court_available

    entry = service.join_waitlist(join_factory())
    assert entry.position == 1
    assert entry.status == "waiting"


def test_positions_count_up_per_bucket(service: FacilityService) -> None:
    first = service.join_waitlist(join_factory(user_id="u-2"))
    second = service.join_waitlist(join_factory(user_id="u-3"))
    other_bucket = service.join_waitlist(join_factory(user_id="u-4", start_time=MONDAY_10, end_time=MONDAY_11))

    assert (first.position, second.position) == (1, 2)
    assert other_bucket.position == 1
    assert positions(service) == [1, 2]


def test_get_position(service: FacilityService) -> None:
    service.join_waitlist(join_factory(user_id="u-2"))
    service.join_waitlist(join_factory(user_id="u-3"))

    mine = service.get_waitlist_position("u-3", "c-1", MONDAY_9, MONDAY_10)
    assert mine.in_waitlist
    assert mine.position == 2
    assert mine.total_waiting == 2

    stranger = service.get_waitlist_position("u-9", "c-1", MONDAY_9, MONDAY_10)
    assert not stranger.in_waitlist
    assert stranger.position is None
    assert stranger.total_waiting == 2


def test_get_position_rejects_bad_window(service: FacilityService) -> None:
    with pytest.raises(InvalidWindow):
        service.get_waitlist_position("u-1", "c-1", MONDAY_10, MONDAY_9)


def test_join_unknown_court(service: FacilityService) -> None:
    with pytest.raises(NotFound):
        service.join_waitlist(join_factory(court_id="missing"))


def test_withdraw_shifts_later_entries(service: FacilityService) -> None:
    entries = [service.join_waitlist(join_factory(user_id=f"u-{n}")) for n in range(4)]

    service.withdraw_waitlist(entries[1].id)

    queued = service.waitlist.queued("c-1", SLOT)
    assert [e.id for e in queued] == [entries[0].id, entries[2].id, entries[3].id]
    assert positions(service) == [1, 2, 3]
    with pytest.raises(NotFound):
        service.waitlist.get(entries[1].id)
    with pytest.raises(NotFound):
        service.withdraw_waitlist(entries[1].id)


def test_cancellation_promotes_head_of_queue(service: FacilityService) -> None:
    booking = service.create_booking(create_factory())
    first = service.join_waitlist(join_factory(user_id="u-2"))
    second = service.join_waitlist(join_factory(user_id="u-3"))

    service.cancel_booking(booking.id)

    promoted = service.waitlist.get(first.id)
    assert promoted.status == "notified"
    assert promoted.notified_at == datetime(2030, 1, 1, 8, 0)
    assert promoted.booking_id is not None
    new_booking = service.get_booking(promoted.booking_id)
    assert new_booking.user_id == "u-2"
    assert new_booking.status == "confirmed"

    position = service.get_waitlist_position("u-2", "c-1", MONDAY_9, MONDAY_10)
    assert not position.in_waitlist
    assert position.total_waiting == 1
    assert service.waitlist.get(second.id).position == 1


def test_failed_promotion_leaves_head_waiting() -> None:
    catalog = Catalog(courts=[court_factory()], equipment=default_equipment(rackets=2))
    service = FacilityService(catalog)
    booking = service.create_booking(create_factory())
    # rackets are a facility-wide counter, so this booking on another slot keeps them busy
    service.create_booking(create_factory(user_id="u-8", start_time=MONDAY_10, end_time=MONDAY_11, racket_count=2))
    greedy = service.join_waitlist(join_factory(user_id="u-2", racket_count=1))
    modest = service.join_waitlist(join_factory(user_id="u-3"))

    service.cancel_booking(booking.id)

    assert service.waitlist.get(greedy.id).status == "waiting"
    assert service.waitlist.get(greedy.id).position == 1
    # the entry behind it is not tried
    assert service.waitlist.get(modest.id).status == "waiting"
    assert positions(service) == [1, 2]


def test_promote_on_empty_bucket_is_a_no_op(service: FacilityService) -> None:
    assert service.waitlist.promote("c-1", SLOT) is None


def test_each_promotion_removes_at_most_one(service: FacilityService) -> None:
    for n in range(3):
        service.join_waitlist(join_factory(user_id=f"u-{n}"))

    promoted = service.waitlist.promote("c-1", SLOT)
    again = service.waitlist.promote("c-1", SLOT)

    assert promoted is not None
    assert again is None  # slot now taken by the promoted booking
    assert service.get_waitlist_position("u-x", "c-1", MONDAY_9, MONDAY_10).total_waiting == 2
    assert positions(service) == [1, 2]


def test_expire_started_windows() -> None:
    service = FacilityService(Catalog(courts=[court_factory()]))
    stale = service.join_waitlist(join_factory(user_id="u-2"))
    later = service.join_waitlist(join_factory(user_id="u-3", start_time=MONDAY_11, end_time=datetime(2030, 1, 7, 12)))

    expired = service.expire_waitlist(datetime(2030, 1, 7, 9, 0))

    assert [e.id for e in expired] == [stale.id]
    assert service.waitlist.get(stale.id).status == "expired"
    assert service.waitlist.get(later.id).status == "waiting"
    assert service.get_waitlist_position("u-2", "c-1", MONDAY_9, MONDAY_10).total_waiting == 0


def test_list_waitlist_for_user(service: FacilityService) -> None:
    service.join_waitlist(join_factory(user_id="u-2"))
    service.join_waitlist(join_factory(user_id="u-3"))
    assert [e.user_id for e in service.list_waitlist("u-2")] == ["u-2"]
    assert len(service.list_waitlist()) == 2


def test_restore_requeues_in_position_order(service: FacilityService) -> None:
    created = datetime(2029, 12, 1)
    entries = [
        WaitlistEntry(id="w-3", user_id="u-3", court_id="c-1", start_time=MONDAY_9, end_time=MONDAY_10, position=5, created_at=created),
        WaitlistEntry(id="w-1", user_id="u-1", court_id="c-1", start_time=MONDAY_9, end_time=MONDAY_10, position=1, created_at=created),
        WaitlistEntry(
            id="w-old", user_id="u-9", court_id="c-1", start_time=MONDAY_9, end_time=MONDAY_10,
            position=2, status="notified", created_at=created,
        ),
    ]

    service.restore([], entries)

    assert [(e.id, e.position) for e in service.waitlist.queued("c-1", SLOT)] == [("w-1", 1), ("w-3", 2)]
    assert service.waitlist.get("w-old").status == "notified"


def test_concurrent_joins_get_unique_contiguous_positions(service: FacilityService) -> None:
    barrier = threading.Barrier(12)

    def attempt(n: int) -> None:
        barrier.wait()
        service.join_waitlist(join_factory(user_id=f"u-{n}"))

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert positions(service) == list(range(1, 13))


def test_cancellation_racing_a_promotion_fills_the_slot_once(service: FacilityService) -> None:
    booking = service.create_booking(create_factory())
    waiting = [service.join_waitlist(join_factory(user_id=f"u-{n}")) for n in range(3)]
    barrier = threading.Barrier(2)

    def cancel() -> None:
        barrier.wait()
        service.cancel_booking(booking.id)

    def promote() -> None:
        barrier.wait()
        service.waitlist.promote("c-1", SLOT)

    threads = [threading.Thread(target=cancel), threading.Thread(target=promote)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    confirmed = [b for b in service.list_bookings() if b.status == "confirmed" and b.court_id == "c-1"]
    assert len(confirmed) == 1
    assert confirmed[0].user_id == waiting[0].user_id
    assert positions(service) == [1, 2]
