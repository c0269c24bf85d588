from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, NaiveDatetime

from .errors import InvalidWindow

CourtType = Literal["indoor", "outdoor"]
ResourceStatus = Literal["available", "maintenance", "unavailable"]
EquipmentType = Literal["racket", "shoes"]
RuleType = Literal["peak_hour", "weekend", "holiday", "premium_court"]
BookingStatus = Literal["confirmed", "cancelled", "waitlist"]
WaitlistStatus = Literal["waiting", "notified", "expired"]


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[start, end)`` interval of naive local time."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvalidWindow(self.start, self.end)

    def overlaps(self, other: TimeWindow) -> bool:
        return self.start < other.end and other.start < self.end

    @property
    def hours(self) -> Decimal:
        delta = self.end - self.start
        seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
        return seconds / Decimal(3600)


class Court(BaseModel):
    id: str
    name: str
    type: CourtType
    base_price: Decimal = Field(..., ge=0)
    status: ResourceStatus = "available"
    description: str | None = None
    created_at: datetime | None = None


class Coach(BaseModel):
    id: str
    name: str
    hourly_rate: Decimal = Field(..., ge=0)
    bio: str | None = None
    specialties: list[str] | None = None
    status: ResourceStatus = "available"
    created_at: datetime | None = None


class Equipment(BaseModel):
    id: str
    type: EquipmentType
    total_stock: int = Field(..., ge=0)
    # informational on load; the ledger derives the live counter from total_stock
    available_count: int | None = Field(default=None, ge=0)
    rental_price: Decimal = Field(..., ge=0)


class PricingRule(BaseModel):
    id: str
    name: str
    rule_type: RuleType
    start_time: time | None = None
    end_time: time | None = None
    days_of_week: list[int] | None = None
    # only read by holiday rules
    dates: list[date] | None = None
    multiplier: Decimal = Field(default=Decimal("1.0"), ge=0)
    surcharge: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = True
    created_at: datetime


class PricingModifier(BaseModel):
    rule_name: str
    rule_type: RuleType
    amount: Decimal
    type: Literal["multiplier", "surcharge"]


class BookingRequest(BaseModel):
    court_id: str = Field(..., min_length=1)
    start_time: NaiveDatetime
    end_time: NaiveDatetime
    coach_id: str | None = None
    racket_count: int = Field(default=0, ge=0)
    shoes_count: int = Field(default=0, ge=0)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)


class BookingCreate(BookingRequest):
    user_id: str = Field(..., min_length=1)

    def to_request(self) -> BookingRequest:
        return BookingRequest(**self.model_dump(exclude={"user_id"}))


class WaitlistJoin(BookingCreate):
    pass


class PriceCalculation(BaseModel):
    base_price: Decimal
    pricing_modifiers: list[PricingModifier] = Field(default_factory=list)
    equipment_fee: Decimal
    coach_fee: Decimal
    total_price: Decimal


class AvailabilityCheck(BaseModel):
    available: bool
    court_available: bool
    coach_available: bool
    rackets_available: int
    shoes_available: int


class Booking(BaseModel):
    id: str
    user_id: str
    court_id: str
    coach_id: str | None = None
    start_time: NaiveDatetime
    end_time: NaiveDatetime
    racket_count: int = 0
    shoes_count: int = 0
    base_price: Decimal
    pricing_modifiers: list[PricingModifier] = Field(default_factory=list)
    equipment_fee: Decimal
    coach_fee: Decimal
    total_price: Decimal
    status: BookingStatus = "confirmed"
    created_at: datetime

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)


class WaitlistEntry(BaseModel):
    id: str
    user_id: str
    court_id: str
    start_time: NaiveDatetime
    end_time: NaiveDatetime
    coach_id: str | None = None
    racket_count: int = 0
    shoes_count: int = 0
    status: WaitlistStatus = "waiting"
    position: int = Field(..., ge=1)
    created_at: datetime
    notified_at: datetime | None = None
    booking_id: str | None = None

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)

    def to_create(self) -> BookingCreate:
        return BookingCreate(
            user_id=self.user_id,
            court_id=self.court_id,
            start_time=self.start_time,
            end_time=self.end_time,
            coach_id=self.coach_id,
            racket_count=self.racket_count,
            shoes_count=self.shoes_count,
        )


class WaitlistJoinResult(BaseModel):
    waitlist_id: str
    position: int


class WaitlistPosition(BaseModel):
    in_waitlist: bool
    position: int | None = None
    total_waiting: int
