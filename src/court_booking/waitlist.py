from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime

from aws_lambda_powertools import Logger

from .admission import AdmissionController
from .errors import InsufficientCapacity, NotFound
from .locks import KeyedLocks
from .models import Booking, TimeWindow, WaitlistEntry, WaitlistJoin, WaitlistPosition

logger = Logger()

BucketKey = tuple[str, datetime, datetime]
PromotionListener = Callable[[WaitlistEntry, Booking], None]


def bucket_key(court_id: str, window: TimeWindow) -> BucketKey:
    return (court_id, window.start, window.end)


def _lock_name(key: BucketKey) -> str:
    court_id, start, end = key
    return f"waitlist:{court_id}:{start.isoformat()}:{end.isoformat()}"


class WaitlistManager:
    """FIFO queues of waiting requests, one per (court, start, end) bucket.

    Only ``waiting`` entries sit in a bucket. Positions are always ``1..N``
    in join order; whenever an entry leaves (promotion, withdrawal, expiry)
    everything behind it moves up by one. All bucket mutations run under
    that bucket's lock.
    """

    def __init__(
        self,
        admission: AdmissionController,
        locks: KeyedLocks | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._admission = admission
        self._locks = locks or KeyedLocks()
        self._clock = clock
        self._guard = threading.Lock()
        self._entries: dict[str, WaitlistEntry] = {}
        self._buckets: dict[BucketKey, list[str]] = {}
        self._listeners: list[PromotionListener] = []

    def subscribe(self, listener: PromotionListener) -> None:
        self._listeners.append(listener)

    def get(self, entry_id: str) -> WaitlistEntry:
        try:
            return self._entries[entry_id]
        except KeyError as exc:
            raise NotFound("waitlist entry", entry_id) from exc

    def list_entries(self, user_id: str | None = None) -> list[WaitlistEntry]:
        entries = [e for e in tuple(self._entries.values()) if user_id is None or e.user_id == user_id]
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def join(self, request: WaitlistJoin) -> WaitlistEntry:
        key = bucket_key(request.court_id, request.window)
        with self._locks.hold([_lock_name(key)]):
            queue = self._buckets.setdefault(key, [])
            entry = WaitlistEntry(
                id=str(uuid.uuid4()),
                user_id=request.user_id,
                court_id=request.court_id,
                start_time=request.start_time,
                end_time=request.end_time,
                coach_id=request.coach_id,
                racket_count=request.racket_count,
                shoes_count=request.shoes_count,
                status="waiting",
                position=len(queue) + 1,
                created_at=self._clock(),
            )
            self._store(entry)
            queue.append(entry.id)
        logger.info(
            "Joined waitlist",
            extra={"entry_id": entry.id, "court_id": entry.court_id, "position": entry.position},
        )
        return entry

    def get_position(self, user_id: str, court_id: str, window: TimeWindow) -> WaitlistPosition:
        queue = self.queued(court_id, window)
        mine = [e.position for e in queue if e.user_id == user_id]
        return WaitlistPosition(
            in_waitlist=bool(mine),
            position=min(mine) if mine else None,
            total_waiting=len(queue),
        )

    def queued(self, court_id: str, window: TimeWindow) -> list[WaitlistEntry]:
        ids = tuple(self._buckets.get(bucket_key(court_id, window), ()))
        # lock-free read: an entry withdrawn mid-read simply drops out
        entries = [self._entries.get(i) for i in ids]
        return [e for e in entries if e is not None]

    def promote(self, court_id: str, window: TimeWindow) -> WaitlistEntry | None:
        """Try to book the head of the bucket; at most one candidate per call.

        A candidate whose request still does not fit stays at the head, and
        nobody behind it is tried.
        """
        key = bucket_key(court_id, window)
        with self._locks.hold([_lock_name(key)]):
            queue = self._buckets.get(key)
            if not queue:
                return None
            candidate = self._entries[queue[0]]
            try:
                booking = self._admission.admit(candidate.to_create())
            except InsufficientCapacity as exc:
                logger.info(
                    "Promotion attempt failed",
                    extra={"entry_id": candidate.id, "court_id": court_id, "reason": exc.reason},
                )
                return None
            promoted = candidate.model_copy(
                update={"status": "notified", "notified_at": self._clock(), "booking_id": booking.id}
            )
            self._store(promoted)
            self._remove_from_queue(key, candidate.id)

        logger.info(
            "Waitlist entry promoted",
            extra={"entry_id": promoted.id, "booking_id": booking.id, "court_id": court_id},
        )
        for listener in self._listeners:
            listener(promoted, booking)
        return promoted

    def on_booking_cancelled(self, booking: Booking) -> None:
        self.promote(booking.court_id, booking.window)

    def withdraw(self, entry_id: str) -> WaitlistEntry:
        entry = self.get(entry_id)
        key = bucket_key(entry.court_id, entry.window)
        with self._locks.hold([_lock_name(key)]):
            entry = self.get(entry_id)
            if entry.status == "waiting":
                self._remove_from_queue(key, entry_id)
            with self._guard:
                self._entries.pop(entry_id, None)
        logger.info("Waitlist entry withdrawn", extra={"entry_id": entry_id, "court_id": entry.court_id})
        return entry

    def expire_started(self, now: datetime | None = None) -> list[WaitlistEntry]:
        """Expire every waiting entry whose window has already begun."""
        now = now or self._clock()
        expired: list[WaitlistEntry] = []
        for key in [k for k in tuple(self._buckets) if k[1] <= now]:
            with self._locks.hold([_lock_name(key)]):
                for entry_id in list(self._buckets.get(key, ())):
                    entry = self._entries[entry_id].model_copy(update={"status": "expired"})
                    self._store(entry)
                    self._remove_from_queue(key, entry_id)
                    expired.append(entry)
        if expired:
            logger.info("Waitlist entries expired", extra={"count": len(expired)})
        return expired

    def restore(self, entries: Iterable[WaitlistEntry]) -> None:
        """Reload persisted entries; active ones are requeued in position order."""
        for entry in sorted(entries, key=lambda e: (e.position, e.created_at)):
            self._store(entry)
            if entry.status == "waiting":
                self._buckets.setdefault(bucket_key(entry.court_id, entry.window), []).append(entry.id)
        for key in tuple(self._buckets):
            self._renumber(key, 0)

    def _store(self, entry: WaitlistEntry) -> None:
        with self._guard:
            self._entries[entry.id] = entry

    def _remove_from_queue(self, key: BucketKey, entry_id: str) -> None:
        queue = self._buckets[key]
        index = queue.index(entry_id)
        queue.pop(index)
        self._renumber(key, index)
        if not queue:
            del self._buckets[key]

    def _renumber(self, key: BucketKey, start: int) -> None:
        queue = self._buckets[key]
        for index in range(start, len(queue)):
            entry = self._entries[queue[index]]
            if entry.position != index + 1:
                self._store(entry.model_copy(update={"position": index + 1}))
