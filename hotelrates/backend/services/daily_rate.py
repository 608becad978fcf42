"""Per-night rate resolution."""
from datetime import date, timedelta
from typing import Iterator, List, Optional, Sequence, Tuple
import logging
from hotelrates.backend.schemas.rates import (
    Adjustment,
    AdjustmentKind,
    DailyRate,
    RateWarning,
    RateWindow,
    SeasonalRate,
    StayRequest,
)
from hotelrates.backend.services.rule_store import rank_windows


logger = logging.getLogger(__name__)

NO_APPLICABLE_RULE = "no_applicable_rule"


def stay_nights(arrival_date: date, departure_date: date) -> Iterator[date]:
    """Yield every night of a stay, departure excluded."""
    current_date = arrival_date
    while current_date < departure_date:
        yield current_date
        current_date += timedelta(days=1)


class DailyRateResolver:
    """
    Resolves the price of every night of a stay from pre-fetched rules.

    Resolution is pure: the same stay and rules always give the same rates.
    For each night the highest-priority applicable rate window wins (ties go
    to the lowest id) and its occupancy-adjusted rate is used; nights with
    no window fall back to the seasonal base, and to zero when there is no
    season either.
    """

    def resolve(
        self,
        stay: StayRequest,
        windows: Sequence[RateWindow],
        seasonal_rates: Sequence[SeasonalRate]
    ) -> Tuple[List[DailyRate], List[RateWarning]]:
        """
        Resolve all nights of a stay.

        Args:
            stay: Validated stay request
            windows: Candidate rate windows, in any order
            seasonal_rates: Candidate seasonal rates, in any order

        Returns:
            Tuple of (daily rates in chronological order, warnings)
        """
        ranked_windows = rank_windows(windows)
        seasons = self._rank_seasons(stay.room_type, seasonal_rates)

        daily_rates: List[DailyRate] = []
        warnings: List[RateWarning] = []
        for night in stay_nights(stay.arrival_date, stay.departure_date):
            daily_rate = self.resolve_night(stay, night, ranked_windows, seasons)
            if daily_rate.rate_window_id is None and daily_rate.seasonal_rate_id is None:
                logger.warning(
                    f"No rate window or seasonal rate for {stay.room_type} on {night}, pricing at 0"
                )
                warnings.append(RateWarning(
                    code=NO_APPLICABLE_RULE,
                    message="No rate window or seasonal rate applies; night priced at 0",
                    night=night,
                    room_type=stay.room_type
                ))
            daily_rates.append(daily_rate)

        return daily_rates, warnings

    def resolve_night(
        self,
        stay: StayRequest,
        night: date,
        ranked_windows: Sequence[RateWindow],
        seasons: Sequence[SeasonalRate]
    ) -> DailyRate:
        """Resolve a single night against already ranked rules."""
        is_arrival = night == stay.arrival_date
        is_departure = night + timedelta(days=1) == stay.departure_date

        seasonal_base, season = self.seasonal_base(night, seasons)
        window = self.select_window(stay, night, ranked_windows, is_arrival, is_departure)

        if window is None:
            return DailyRate(
                date=night,
                base_rate=round(seasonal_base, 2),
                adjusted_rate=max(0.0, round(seasonal_base, 2)),
                seasonal_rate_id=season.id if season else None
            )

        adjusted_rate, adjustments = self.occupancy_rate(window, stay.adults)
        return DailyRate(
            date=night,
            base_rate=round(window.base_rate, 2),
            adjusted_rate=max(0.0, round(adjusted_rate, 2)),
            rate_window_id=window.id,
            adjustments=adjustments
        )

    def seasonal_base(
        self,
        night: date,
        seasons: Sequence[SeasonalRate]
    ) -> Tuple[float, Optional[SeasonalRate]]:
        """
        Seasonal base value for a night.

        Args:
            night: Night being priced
            seasons: Seasonal rates for the stay's room type, ranked

        Returns:
            Tuple of (nightly value, season used or None)
        """
        for season in seasons:
            if season.covers(night):
                return season.nightly_rate(night), season
        return 0.0, None

    def select_window(
        self,
        stay: StayRequest,
        night: date,
        ranked_windows: Sequence[RateWindow],
        is_arrival: bool,
        is_departure: bool
    ) -> Optional[RateWindow]:
        """Pick the first applicable window; ranked_windows must already be ranked."""
        for window in ranked_windows:
            if self.window_applies(window, stay, night, is_arrival, is_departure):
                return window
        return None

    def window_applies(
        self,
        window: RateWindow,
        stay: StayRequest,
        night: date,
        is_arrival: bool,
        is_departure: bool
    ) -> bool:
        """Check validity, room type, stay length, guest type and day conditions."""
        if not window.is_active or not window.covers(night):
            return False
        if window.room_type is not None and window.room_type != stay.room_type:
            return False
        if window.min_stay is not None and stay.nights < window.min_stay:
            return False
        if window.max_stay is not None and stay.nights > window.max_stay:
            return False
        if window.guest_types and stay.guest_type not in window.guest_types:
            return False

        condition = window.day_conditions[night.weekday()]
        return condition.allows(is_arrival, is_departure)

    def occupancy_rate(self, window: RateWindow, adults: int) -> Tuple[float, List[Adjustment]]:
        """
        Occupancy-adjusted nightly rate for a window.

        Args:
            window: Selected rate window
            adults: Number of adults in the room

        Returns:
            Tuple of (adjusted rate, adjustments explaining the difference from base)
        """
        base_rate = window.base_rate

        if adults == 1 and window.single_rate is not None:
            delta = window.single_rate - base_rate
            return window.single_rate, [Adjustment(
                name="Single Occupancy",
                kind=AdjustmentKind.FIXED,
                value=window.single_rate,
                amount=round(delta, 2)
            )]

        if adults > 2 and window.extra_person_rate is not None:
            extra_persons = adults - 2
            delta = extra_persons * window.extra_person_rate
            return base_rate + delta, [Adjustment(
                name="Extra Person",
                kind=AdjustmentKind.FIXED,
                value=window.extra_person_rate,
                amount=round(delta, 2)
            )]

        return base_rate, []

    def _rank_seasons(
        self,
        room_type: str,
        seasonal_rates: Sequence[SeasonalRate]
    ) -> List[SeasonalRate]:
        # Latest-starting season wins where seasons overlap, then lowest id
        matching = [
            s for s in seasonal_rates
            if s.is_active and s.room_type == room_type
        ]
        return sorted(matching, key=lambda s: (-s.valid_from.toordinal(), s.id))
