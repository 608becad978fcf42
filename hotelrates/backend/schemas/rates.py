"""Rate engine Pydantic schemas."""
import enum
import json
from datetime import date
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class GuestType(str, enum.Enum):
    """Guest type enumeration."""
    INDIVIDUAL = "individual"
    GROUP = "group"
    CORPORATE = "corporate"


class AdjustmentKind(str, enum.Enum):
    """How an adjustment value is expressed."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DayCondition(BaseModel):
    """
    Per-weekday applicability flags.

    Each flag is tri-state: None means allowed, only an explicit False vetoes.
    """
    arrival: Optional[bool] = None
    departure: Optional[bool] = None
    stay: Optional[bool] = None

    def allows(self, is_arrival: bool, is_departure: bool) -> bool:
        """Check whether a night with the given role may use the rule."""
        if is_arrival and self.arrival is False:
            return False
        if is_departure and self.departure is False:
            return False
        if not is_arrival and not is_departure and self.stay is False:
            return False
        return True


DayConditions = Tuple[
    DayCondition, DayCondition, DayCondition, DayCondition,
    DayCondition, DayCondition, DayCondition
]


def _permissive_week() -> DayConditions:
    return tuple(DayCondition() for _ in WEEKDAYS)


def parse_day_conditions(raw: Any) -> DayConditions:
    """
    Normalise stored day conditions into a seven-element tuple.

    Storage keeps a JSON object keyed by lowercase weekday names, sometimes
    serialised as a string. Missing weekdays are permissive.

    Args:
        raw: None, JSON string, mapping keyed by weekday name, or a sequence
            of seven entries indexed Monday first

    Returns:
        Tuple of seven DayCondition, indexed by date.weekday()
    """
    if raw is None or raw == "":
        return _permissive_week()
    if isinstance(raw, str):
        raw = json.loads(raw)
    if isinstance(raw, dict):
        unknown = set(raw) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday keys in day conditions: {sorted(unknown)}")
        return tuple(
            DayCondition.model_validate(raw.get(day) or {}) for day in WEEKDAYS
        )
    if isinstance(raw, (list, tuple)):
        if len(raw) != len(WEEKDAYS):
            raise ValueError(f"Day conditions must have 7 entries, got {len(raw)}")
        return tuple(
            entry if isinstance(entry, DayCondition) else DayCondition.model_validate(entry or {})
            for entry in raw
        )
    raise ValueError(f"Unsupported day conditions value: {type(raw).__name__}")


class RateWindow(BaseModel):
    """Time-bounded pricing rule with day-of-week applicability and priority."""
    id: str
    org_id: str
    code: Optional[str] = None
    name: Optional[str] = None
    room_type: Optional[str] = Field(None, description="Room type, None applies to all types")
    valid_from: date
    valid_until: date
    day_conditions: DayConditions = Field(default_factory=_permissive_week)
    base_rate: float = Field(..., ge=0)
    single_rate: Optional[float] = Field(None, ge=0)
    extra_person_rate: Optional[float] = Field(None, ge=0)
    min_stay: Optional[int] = Field(None, ge=1, description="Minimum nights")
    max_stay: Optional[int] = Field(None, ge=1, description="Maximum nights")
    guest_types: List[GuestType] = Field(default_factory=list, description="Empty means every guest type")
    priority: int = 0
    is_active: bool = True

    class Config:
        from_attributes = True

    @field_validator("day_conditions", mode="before")
    @classmethod
    def _parse_day_conditions(cls, value: Any) -> DayConditions:
        return parse_day_conditions(value)

    @field_validator("guest_types", mode="before")
    @classmethod
    def _none_guest_types(cls, value: Any) -> Any:
        return value or []

    def covers(self, night: date) -> bool:
        """Check whether the validity interval includes a night."""
        return self.valid_from <= night <= self.valid_until


class SeasonalRate(BaseModel):
    """Baseline nightly price tied to a named season and room type."""
    id: str
    org_id: str
    room_type: str
    name: str = Field(..., description="Season label")
    season_type: Optional[str] = Field(None, description="high, low, shoulder or peak")
    valid_from: date
    valid_until: date
    base_rate: float = Field(..., ge=0)
    weekend_rate: Optional[float] = Field(None, ge=0)
    multiplier: float = Field(default=1.0, ge=0)
    is_active: bool = True

    class Config:
        from_attributes = True

    @field_validator("multiplier", mode="before")
    @classmethod
    def _default_multiplier(cls, value: Any) -> Any:
        return 1.0 if value is None else value

    def covers(self, night: date) -> bool:
        """Check whether the validity interval includes a night."""
        return self.valid_from <= night <= self.valid_until

    def nightly_rate(self, night: date) -> float:
        """Nightly seasonal value: weekend rate on Sat/Sun when set, times the multiplier."""
        value = self.base_rate
        if night.weekday() >= 5 and self.weekend_rate is not None:
            value = self.weekend_rate
        return value * self.multiplier


class StayRequest(BaseModel):
    """
    Stay to be priced.

    Structural checks only; night count and occupancy rules are enforced by
    the calculation service so they surface as StayValidationError.
    """
    org_id: str = Field(..., min_length=1, description="Organisation (property) identifier")
    room_type: str = Field(..., min_length=1, description="Room type identifier")
    arrival_date: date
    departure_date: date = Field(..., description="Exclusive: the guest leaves that morning")
    adults: int = Field(default=1)
    children: int = Field(default=0)
    guest_type: GuestType = GuestType.INDIVIDUAL
    promo_code: Optional[str] = None

    @property
    def nights(self) -> int:
        """Number of nights in the stay."""
        return (self.departure_date - self.arrival_date).days


class Adjustment(BaseModel):
    """Named price adjustment kept for auditability."""
    name: str
    kind: AdjustmentKind
    value: float = Field(..., description="Percentage points or fixed amount")
    amount: float = Field(..., description="Resulting delta")


class DailyRate(BaseModel):
    """Resolved price for one night."""
    date: date
    base_rate: float
    adjusted_rate: float = Field(..., ge=0)
    rate_window_id: Optional[str] = None
    seasonal_rate_id: Optional[str] = None
    adjustments: List[Adjustment] = Field(default_factory=list)


class RateBreakdown(BaseModel):
    """Split of the stay total."""
    accommodation: float
    adjustments: float = 0.0
    extras: float = 0.0
    taxes: float = 0.0


class RateWarning(BaseModel):
    """Non-fatal condition met while pricing a stay."""
    code: str
    message: str
    night: Optional[date] = None
    room_type: Optional[str] = None


class RateCalculationResult(BaseModel):
    """Full price breakdown for a stay."""
    total_amount: float = Field(..., ge=0)
    daily_rates: List[DailyRate]
    breakdown: RateBreakdown
    adjustments: List[Adjustment] = Field(default_factory=list, description="Stay-level adjustments")
    warnings: List[RateWarning] = Field(default_factory=list)
    occupancy: Optional[float] = Field(None, description="Occupancy used for yield, if applied")


class RateCalculationRequest(StayRequest):
    """API body for the calculate endpoint."""
    occupancy: Optional[float] = Field(None, description="Occupancy fraction for yield management")
    use_current_occupancy: bool = Field(
        default=False,
        description="Read occupancy from the occupancy source for the arrival date"
    )

    @model_validator(mode="after")
    def _single_occupancy_input(self) -> "RateCalculationRequest":
        if self.occupancy is not None and self.use_current_occupancy:
            raise ValueError("Pass either occupancy or use_current_occupancy, not both")
        return self

    def to_stay(self) -> StayRequest:
        """Strip the yield options off the request."""
        return StayRequest(**self.model_dump(exclude={"occupancy", "use_current_occupancy"}))


class OccupancyReading(BaseModel):
    """Occupancy fraction for an organisation on a date."""
    org_id: str
    on_date: date
    occupancy: float = Field(..., ge=0, le=1)
