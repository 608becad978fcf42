"""Yield management: demand-based adjustment of a stay total."""
from datetime import date
from typing import Optional, Sequence, Tuple
import math
from hotelrates.backend.core.errors import YieldInputError
from hotelrates.backend.schemas.rates import Adjustment, AdjustmentKind


YIELD_ADJUSTMENT_NAME = "Yield Management"

# (minimum occupancy, multiplier), highest threshold first
YIELD_STEPS: Tuple[Tuple[float, float], ...] = (
    (0.90, 1.30),  # High demand
    (0.80, 1.15),
    (0.70, 1.00),  # Normal demand
    (0.50, 0.90),
)
LOW_DEMAND_MULTIPLIER = 0.80


class YieldAdjuster:
    """Applies an occupancy-driven multiplier once to a stay subtotal."""

    def __init__(
        self,
        steps: Sequence[Tuple[float, float]] = YIELD_STEPS,
        low_demand_multiplier: float = LOW_DEMAND_MULTIPLIER
    ):
        self.steps = sorted(steps, key=lambda step: step[0], reverse=True)
        self.low_demand_multiplier = low_demand_multiplier

    def check_occupancy(
        self,
        occupancy: float,
        room_type: Optional[str] = None,
        on_date: Optional[date] = None
    ) -> None:
        """Reject occupancy fractions outside [0, 1], reporting the stay being priced."""
        if occupancy is None or math.isnan(occupancy) or not 0.0 <= occupancy <= 1.0:
            raise YieldInputError(
                f"Occupancy must be within [0, 1], got {occupancy}",
                room_type=room_type,
                on_date=on_date
            )

    def multiplier_for(self, occupancy: float) -> float:
        """Multiplier of the step the occupancy falls into."""
        self.check_occupancy(occupancy)
        for threshold, multiplier in self.steps:
            if occupancy >= threshold:
                return multiplier
        return self.low_demand_multiplier

    def apply_yield(self, subtotal: float, occupancy: float) -> Tuple[float, Adjustment]:
        """
        Apply yield management to a stay subtotal.

        Args:
            subtotal: Accommodation subtotal of the whole stay
            occupancy: Current occupancy fraction in [0, 1]

        Returns:
            Tuple of (adjusted total, "Yield Management" adjustment record)
        """
        multiplier = self.multiplier_for(occupancy)
        amount = round(subtotal * multiplier - subtotal, 2)
        adjustment = Adjustment(
            name=YIELD_ADJUSTMENT_NAME,
            kind=AdjustmentKind.PERCENTAGE,
            value=round((multiplier - 1) * 100, 2),
            amount=amount
        )
        return max(0.0, round(subtotal + amount, 2)), adjustment
