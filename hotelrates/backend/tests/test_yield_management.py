"""Tests for yield management."""
import pytest
from hotelrates.backend.core.errors import YieldInputError
from hotelrates.backend.services.yield_management import YieldAdjuster, YIELD_ADJUSTMENT_NAME


@pytest.mark.parametrize("occupancy,expected", [
    (1.0, 1.30),
    (0.90, 1.30),
    (0.89, 1.15),
    (0.80, 1.15),
    (0.75, 1.00),
    (0.70, 1.00),
    (0.60, 0.90),
    (0.50, 0.90),
    (0.49, 0.80),
    (0.0, 0.80),
])
def test_multiplier_steps(occupancy, expected):
    """Test the occupancy step table, thresholds inclusive."""
    assert YieldAdjuster().multiplier_for(occupancy) == expected


def test_high_demand_adjustment():
    """Test that 92% occupancy lifts 100000 to 130000 with one +30000 entry."""
    total, adjustment = YieldAdjuster().apply_yield(100000.0, 0.92)
    
    assert total == 130000.0
    assert adjustment.name == YIELD_ADJUSTMENT_NAME
    assert adjustment.kind == "percentage"
    assert adjustment.value == 30.0
    assert adjustment.amount == 30000.0


def test_low_demand_discount():
    """Test the discount below 50% occupancy."""
    total, adjustment = YieldAdjuster().apply_yield(100000.0, 0.2)
    
    assert total == 80000.0
    assert adjustment.amount == -20000.0
    assert adjustment.value == -20.0


def test_normal_demand_records_zero_adjustment():
    """Test that the neutral step still records an entry."""
    total, adjustment = YieldAdjuster().apply_yield(100000.0, 0.72)
    
    assert total == 100000.0
    assert adjustment.amount == 0.0


@pytest.mark.parametrize("occupancy", [-0.01, 1.01, float("nan")])
def test_occupancy_out_of_range_rejected(occupancy):
    """Test rejection of occupancy outside [0, 1]."""
    with pytest.raises(YieldInputError):
        YieldAdjuster().apply_yield(100000.0, occupancy)
