from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from aws_lambda_powertools import Logger

from .errors import AdmissionFailure, InsufficientCapacity, NotFound
from .locks import KeyedLocks
from .models import Equipment, TimeWindow

logger = Logger()

ResourceKind = Literal["court", "coach", "equipment"]

_EQUIPMENT_FAILURES: dict[str, AdmissionFailure] = {
    "racket": "insufficient_rackets",
    "shoes": "insufficient_shoes",
}


@dataclass(frozen=True)
class ResourceRef:
    kind: ResourceKind
    id: str

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.id}"

    @property
    def exclusive(self) -> bool:
        return self.kind != "equipment"

    def failure(self) -> AdmissionFailure:
        if self.kind == "court":
            return "court_unavailable"
        if self.kind == "coach":
            return "coach_unavailable"
        return _EQUIPMENT_FAILURES.get(self.id, "insufficient_rackets")


@dataclass(frozen=True)
class Claim:
    ref: ResourceRef
    quantity: int = 1


@dataclass(frozen=True)
class Reservation:
    id: str
    ref: ResourceRef
    window: TimeWindow
    quantity: int
    holder: str


def _check_quantities(claims: Sequence[Claim]) -> None:
    for claim in claims:
        if claim.ref.exclusive and claim.quantity != 1:
            raise ValueError(f"exclusive resource {claim.ref.key} takes quantity 1, got {claim.quantity}")
        if claim.quantity < 1:
            raise ValueError(f"quantity must be positive, got {claim.quantity}")


class InventoryLedger:
    """Sole owner of committed capacity.

    Courts and coaches are exclusive: a reservation is refused when any live
    reservation on the same resource overlaps the window. Equipment is a plain
    counter per type, decremented at commit and restored at release,
    independent of the window.
    """

    def __init__(self, equipment: Iterable[Equipment] = (), locks: KeyedLocks | None = None) -> None:
        self._locks = locks or KeyedLocks()
        self._stock: dict[str, int] = {}
        self._available: dict[str, int] = {}
        for item in equipment:
            self._stock[item.type] = item.total_stock
            self._available[item.type] = item.total_stock
        self._by_key: dict[str, dict[str, Reservation]] = {}
        self._live: dict[str, Reservation] = {}

    # reads are advisory: taken without locks and possibly stale by the time they are used

    def is_free(self, ref: ResourceRef, window: TimeWindow) -> bool:
        held = tuple(self._by_key.get(ref.key, {}).values())
        return not any(r.window.overlaps(window) for r in held)

    def available_count(self, equipment_type: str) -> int:
        return max(self._available.get(equipment_type, 0), 0)

    def total_stock(self, equipment_type: str) -> int:
        return self._stock.get(equipment_type, 0)

    def reservations_for(self, holder: str) -> list[Reservation]:
        return [r for r in tuple(self._live.values()) if r.holder == holder]

    # mutations

    def reserve(self, ref: ResourceRef, window: TimeWindow, quantity: int = 1, holder: str = "") -> Reservation:
        return self.reserve_all([Claim(ref, quantity)], window, holder)[0]

    def reserve_all(self, claims: Sequence[Claim], window: TimeWindow, holder: str = "") -> list[Reservation]:
        """Check and commit every claim as one step, or commit nothing.

        Raises ``InsufficientCapacity`` naming the first claim that cannot be
        met, in the order given.
        """
        _check_quantities(claims)
        with self._locks.hold(c.ref.key for c in claims):
            for claim in claims:
                if not self._has_capacity(claim, window):
                    logger.info(
                        "Reservation refused",
                        extra={"resource": claim.ref.key, "quantity": claim.quantity, "holder": holder},
                    )
                    raise InsufficientCapacity(claim.ref.failure())
            return [self._commit(claim, window, holder) for claim in claims]

    def restore_all(self, claims: Sequence[Claim], window: TimeWindow, holder: str = "") -> list[Reservation]:
        """Re-commit claims of an already admitted booking without refusing any.

        Capacity may have shrunk since admission (stock lowered, a resource
        double-booked in storage). Such claims are logged and committed
        anyway; an equipment counter may drop below zero until enough is
        released.
        """
        _check_quantities(claims)
        with self._locks.hold(c.ref.key for c in claims):
            for claim in claims:
                if not self._has_capacity(claim, window):
                    logger.warning(
                        "Restored reservation exceeds capacity",
                        extra={"resource": claim.ref.key, "quantity": claim.quantity, "holder": holder},
                    )
            return [self._commit(claim, window, holder) for claim in claims]

    def release(self, reservation: Reservation) -> None:
        self.release_all([reservation])

    def release_all(self, reservations: Sequence[Reservation]) -> None:
        with self._locks.hold(r.ref.key for r in reservations):
            for reservation in reservations:
                if self._live.pop(reservation.id, None) is None:
                    raise NotFound("reservation", reservation.id)
                if reservation.ref.exclusive:
                    self._by_key[reservation.ref.key].pop(reservation.id, None)
                else:
                    kind = reservation.ref.id
                    self._available[kind] = min(self._available.get(kind, 0) + reservation.quantity, self.total_stock(kind))
                logger.debug("Reservation released", extra={"reservation_id": reservation.id, "resource": reservation.ref.key})

    def _has_capacity(self, claim: Claim, window: TimeWindow) -> bool:
        if claim.ref.exclusive:
            return self.is_free(claim.ref, window)
        return self._available.get(claim.ref.id, 0) - claim.quantity >= 0

    def _commit(self, claim: Claim, window: TimeWindow, holder: str) -> Reservation:
        reservation = Reservation(
            id=str(uuid.uuid4()),
            ref=claim.ref,
            window=window,
            quantity=claim.quantity,
            holder=holder,
        )
        if claim.ref.exclusive:
            self._by_key.setdefault(claim.ref.key, {})[reservation.id] = reservation
        else:
            self._available[claim.ref.id] = self._available.get(claim.ref.id, 0) - claim.quantity
        self._live[reservation.id] = reservation
        return reservation
