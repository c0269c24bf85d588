from __future__ import annotations

from .catalog import Catalog
from .ledger import InventoryLedger, ResourceRef
from .models import AvailabilityCheck, BookingRequest


class AvailabilityChecker:
    """Read-only preview of whether a request could be admitted right now.

    Nothing is reserved; admission repeats these checks under the ledger's locks.
    """

    def __init__(self, catalog: Catalog, ledger: InventoryLedger) -> None:
        self._catalog = catalog
        self._ledger = ledger

    def check(self, request: BookingRequest) -> AvailabilityCheck:
        window = request.window
        court = self._catalog.court(request.court_id)
        court_available = court.status == "available" and self._ledger.is_free(ResourceRef("court", court.id), window)

        coach_available = True
        if request.coach_id is not None:
            coach = self._catalog.coach(request.coach_id)
            coach_available = coach.status == "available" and self._ledger.is_free(
                ResourceRef("coach", coach.id), window
            )

        rackets = self._ledger.available_count("racket")
        shoes = self._ledger.available_count("shoes")
        return AvailabilityCheck(
            available=(
                court_available
                and coach_available
                and rackets >= request.racket_count
                and shoes >= request.shoes_count
            ),
            court_available=court_available,
            coach_available=coach_available,
            rackets_available=rackets,
            shoes_available=shoes,
        )
