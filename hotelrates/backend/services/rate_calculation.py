"""Rate calculation service: full stay price breakdown."""
from datetime import timedelta
from typing import List, Optional, Tuple
import asyncio
import logging
from hotelrates.backend.core.config import settings
from hotelrates.backend.core.errors import StayValidationError, StoreUnavailableError, YieldInputError
from hotelrates.backend.db.session import SessionLocal
from hotelrates.backend.schemas.rates import (
    Adjustment,
    RateBreakdown,
    RateCalculationResult,
    RateWindow,
    SeasonalRate,
    StayRequest,
)
from hotelrates.backend.services.daily_rate import DailyRateResolver
from hotelrates.backend.services.occupancy import OccupancySource
from hotelrates.backend.services.rule_cache import CachedRuleStore
from hotelrates.backend.services.rule_store import RuleStore, SqlRuleStore, PostgrestRuleStore
from hotelrates.backend.services.yield_management import YieldAdjuster


logger = logging.getLogger(__name__)


def build_rule_store() -> RuleStore:
    """Build the configured rule store, wrapped in the TTL cache."""
    if settings.rule_store_backend == "postgrest":
        if not settings.postgrest_url or not settings.postgrest_api_key:
            raise ValueError("postgrest_url and postgrest_api_key are required for the postgrest rule store")
        store: RuleStore = PostgrestRuleStore(
            base_url=settings.postgrest_url,
            api_key=settings.postgrest_api_key,
            timeout_seconds=settings.store_timeout_seconds
        )
    else:
        store = SqlRuleStore(SessionLocal)

    return CachedRuleStore(
        store,
        ttl_seconds=settings.rule_cache_ttl_seconds,
        max_entries=settings.rule_cache_max_entries
    )


class RateCalculationService:
    """Orchestrates rule fetching, nightly resolution and yield management."""

    def __init__(
        self,
        rule_store: Optional[RuleStore] = None,
        occupancy_source: Optional[OccupancySource] = None,
        resolver: Optional[DailyRateResolver] = None,
        yield_adjuster: Optional[YieldAdjuster] = None,
        store_timeout: Optional[float] = None
    ):
        """
        Initialize rate calculation service.

        Args:
            rule_store: Rule store (defaults to the configured store behind the TTL cache)
            occupancy_source: Source for calculate_with_current_occupancy
            resolver: Nightly resolver
            yield_adjuster: Yield management step function
            store_timeout: Seconds allowed for all store reads of one calculation
                (defaults to settings.store_timeout_seconds)
        """
        self.rule_store = rule_store if rule_store is not None else build_rule_store()
        self.occupancy_source = occupancy_source
        self.resolver = resolver or DailyRateResolver()
        self.yield_adjuster = yield_adjuster or YieldAdjuster()
        self.store_timeout = store_timeout if store_timeout is not None else settings.store_timeout_seconds

    def validate(self, stay: StayRequest) -> None:
        """
        Validate a stay request before any store access.

        Raises:
            StayValidationError: Non-positive night count or invalid party size
        """
        if stay.departure_date <= stay.arrival_date:
            raise StayValidationError(
                f"Departure {stay.departure_date} must be after arrival {stay.arrival_date}",
                room_type=stay.room_type,
                on_date=stay.arrival_date
            )
        if stay.adults < 1:
            raise StayValidationError(
                f"At least one adult is required, got {stay.adults}",
                room_type=stay.room_type,
                on_date=stay.arrival_date
            )
        if stay.children < 0:
            raise StayValidationError(
                f"Children cannot be negative, got {stay.children}",
                room_type=stay.room_type,
                on_date=stay.arrival_date
            )

    async def fetch_rules(self, stay: StayRequest) -> Tuple[List[RateWindow], List[SeasonalRate]]:
        """Fetch windows and seasonal rates covering every night of the stay."""
        last_night = stay.departure_date - timedelta(days=1)
        try:
            async with asyncio.timeout(self.store_timeout):
                windows = await self.rule_store.get_windows(
                    stay.org_id, stay.room_type, stay.arrival_date, last_night
                )
                seasonal_rates = await self.rule_store.get_seasonal_rates(
                    stay.org_id, stay.room_type, stay.arrival_date, last_night
                )
        except TimeoutError as e:
            logger.warning(f"Rule store timed out after {self.store_timeout}s for {stay.room_type}")
            raise StoreUnavailableError(
                f"Rule store did not answer within {self.store_timeout}s",
                room_type=stay.room_type,
                on_date=stay.arrival_date
            ) from e
        return windows, seasonal_rates

    async def calculate(
        self,
        stay: StayRequest,
        occupancy: Optional[float] = None
    ) -> RateCalculationResult:
        """
        Calculate the price of a stay.

        Args:
            stay: Stay request
            occupancy: When given, yield management is applied once to the
                accommodation subtotal

        Returns:
            RateCalculationResult with one DailyRate per night

        Raises:
            StayValidationError: Invalid stay request
            YieldInputError: Occupancy outside [0, 1]
            StoreUnavailableError: Rule store unreachable or too slow
            RuleDataError: A stored rule row could not be parsed
        """
        self.validate(stay)
        if occupancy is not None:
            self.yield_adjuster.check_occupancy(
                occupancy, room_type=stay.room_type, on_date=stay.arrival_date
            )

        logger.info(
            f"Calculating rate for {stay.room_type} ({stay.org_id}) "
            f"{stay.arrival_date} -> {stay.departure_date}, {stay.adults} adults"
        )

        windows, seasonal_rates = await self.fetch_rules(stay)
        daily_rates, warnings = self.resolver.resolve(stay, windows, seasonal_rates)

        accommodation = round(sum(rate.adjusted_rate for rate in daily_rates), 2)

        subtotal = accommodation
        adjustments: List[Adjustment] = []
        if occupancy is not None:
            subtotal, yield_adjustment = self.yield_adjuster.apply_yield(accommodation, occupancy)
            adjustments.append(yield_adjustment)

        # Extras and taxes are not computed by this engine
        breakdown = RateBreakdown(
            accommodation=accommodation,
            adjustments=round(sum(a.amount for a in adjustments), 2),
            extras=0.0,
            taxes=0.0
        )
        total_amount = max(0.0, round(subtotal + breakdown.extras + breakdown.taxes, 2))

        logger.info(
            f"Rate for {stay.room_type} {stay.arrival_date}: {len(daily_rates)} nights, "
            f"total {total_amount}, {len(warnings)} warnings"
        )

        return RateCalculationResult(
            total_amount=total_amount,
            daily_rates=daily_rates,
            breakdown=breakdown,
            adjustments=adjustments,
            warnings=warnings,
            occupancy=occupancy
        )

    async def calculate_with_yield(self, stay: StayRequest, occupancy: float) -> RateCalculationResult:
        """Calculate a stay with yield management; same path as calculate()."""
        if occupancy is None:
            raise YieldInputError(
                "Occupancy is required for a yield-adjusted calculation",
                room_type=stay.room_type,
                on_date=stay.arrival_date
            )
        return await self.calculate(stay, occupancy=occupancy)

    async def calculate_with_current_occupancy(self, stay: StayRequest) -> RateCalculationResult:
        """Calculate a stay with yield from the occupancy source on the arrival date."""
        if self.occupancy_source is None:
            raise ValueError("No occupancy source configured")

        self.validate(stay)
        try:
            async with asyncio.timeout(self.store_timeout):
                occupancy = await self.occupancy_source.get_occupancy(stay.org_id, stay.arrival_date)
        except TimeoutError as e:
            raise StoreUnavailableError(
                f"Occupancy source did not answer within {self.store_timeout}s",
                room_type=stay.room_type,
                on_date=stay.arrival_date
            ) from e

        return await self.calculate(stay, occupancy=occupancy)
