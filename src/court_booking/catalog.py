from __future__ import annotations

from collections.abc import Iterable

from .errors import NotFound
from .models import Coach, Court, Equipment, EquipmentType, PricingRule


class Catalog:
    """Facility configuration as the admin screens left it.

    Read-only for the booking core. Equipment here only carries the
    definition (stock, rental price); the live counter belongs to the ledger.
    """

    def __init__(
        self,
        courts: Iterable[Court] = (),
        coaches: Iterable[Coach] = (),
        equipment: Iterable[Equipment] = (),
        pricing_rules: Iterable[PricingRule] = (),
    ) -> None:
        self._courts = {c.id: c for c in courts}
        self._coaches = {c.id: c for c in coaches}
        self._equipment: dict[EquipmentType, Equipment] = {e.type: e for e in equipment}
        # stable creation order; ties broken by id so evaluation is reproducible
        self._rules = sorted(pricing_rules, key=lambda r: (r.created_at, r.id))

    def court(self, court_id: str) -> Court:
        try:
            return self._courts[court_id]
        except KeyError as exc:
            raise NotFound("court", court_id) from exc

    def coach(self, coach_id: str) -> Coach:
        try:
            return self._coaches[coach_id]
        except KeyError as exc:
            raise NotFound("coach", coach_id) from exc

    def equipment(self, equipment_type: EquipmentType) -> Equipment | None:
        return self._equipment.get(equipment_type)

    @property
    def equipment_types(self) -> list[Equipment]:
        return list(self._equipment.values())

    def active_rules(self) -> list[PricingRule]:
        return [r for r in self._rules if r.is_active]
