from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from .catalog import Catalog
from .models import BookingRequest, Court, EquipmentType, PriceCalculation, PricingModifier, PricingRule, RuleType

ONE = Decimal("1")
ZERO = Decimal("0")

Applicability = Callable[[PricingRule, datetime, Court], bool]


def weekday_index(moment: datetime) -> int:
    """0=Sunday .. 6=Saturday."""
    return (moment.weekday() + 1) % 7


def _peak_hour(rule: PricingRule, start: datetime, court: Court) -> bool:
    if rule.start_time is None or rule.end_time is None:
        return False
    clock = start.time().replace(second=0, microsecond=0)
    if not rule.start_time <= clock < rule.end_time:
        return False
    # None means every day; an empty list means none
    return rule.days_of_week is None or weekday_index(start) in rule.days_of_week


def _weekend(rule: PricingRule, start: datetime, court: Court) -> bool:
    return bool(rule.days_of_week) and weekday_index(start) in rule.days_of_week


def _holiday(rule: PricingRule, start: datetime, court: Court) -> bool:
    return bool(rule.dates) and start.date() in rule.dates


def _premium_court(rule: PricingRule, start: datetime, court: Court) -> bool:
    return court.type == "indoor"


RULE_PREDICATES: dict[RuleType, Applicability] = {
    "peak_hour": _peak_hour,
    "weekend": _weekend,
    "holiday": _holiday,
    "premium_court": _premium_court,
}


def rule_applies(rule: PricingRule, start: datetime, court: Court) -> bool:
    return RULE_PREDICATES[rule.rule_type](rule, start, court)


class PricingEngine:
    """Prices a request against the catalog as it stands at call time.

    No rounding happens here; values are exact decimals and presentation
    code decides how to display them.
    """

    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def calculate(self, request: BookingRequest) -> PriceCalculation:
        window = request.window
        hours = window.hours
        court = self._catalog.court(request.court_id)

        base_price = court.base_price * hours
        running = base_price
        modifiers: list[PricingModifier] = []
        for rule in self._catalog.active_rules():
            if not rule_applies(rule, window.start, court):
                continue
            if rule.multiplier != ONE:
                modifiers.append(
                    PricingModifier(
                        rule_name=rule.name,
                        rule_type=rule.rule_type,
                        amount=running * (rule.multiplier - ONE),
                        type="multiplier",
                    )
                )
                running *= rule.multiplier
            if rule.surcharge > ZERO:
                modifiers.append(
                    PricingModifier(
                        rule_name=rule.name,
                        rule_type=rule.rule_type,
                        amount=rule.surcharge,
                        type="surcharge",
                    )
                )
                running += rule.surcharge

        equipment_fee = self._rental("racket", request.racket_count) + self._rental("shoes", request.shoes_count)
        coach_fee = ZERO
        if request.coach_id is not None:
            coach_fee = self._catalog.coach(request.coach_id).hourly_rate * hours

        return PriceCalculation(
            base_price=base_price,
            pricing_modifiers=modifiers,
            equipment_fee=equipment_fee,
            coach_fee=coach_fee,
            total_price=running + equipment_fee + coach_fee,
        )

    def _rental(self, equipment_type: EquipmentType, count: int) -> Decimal:
        if not count:
            return ZERO
        item = self._catalog.equipment(equipment_type)
        return item.rental_price * count if item else ZERO
