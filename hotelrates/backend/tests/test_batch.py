"""Tests for batch re-pricing."""
import asyncio
import pytest
from datetime import date
from hotelrates.backend.core.errors import BatchAbortedError, YieldInputError
from hotelrates.backend.services.batch import BatchRepricingService
from hotelrates.backend.services.rate_calculation import RateCalculationService


class CountingRuleStore:
    """Rule store tracking how many fetches run at once."""
    
    def __init__(self, windows, delay=0.01):
        self.windows = windows
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled = 0
    
    async def get_windows(self, org_id, room_type, start, end):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1
        return [w for w in self.windows if w.room_type in (None, room_type)]
    
    async def get_seasonal_rates(self, org_id, room_type, start, end):
        return []


@pytest.mark.asyncio
async def test_batch_prices_every_stay(make_window, make_stay):
    """Test that every stay gets its own result with chronological nights."""
    store = CountingRuleStore([
        make_window("dbl", room_type="DBL", base_rate=50000.0),
        make_window("ste", room_type="STE", base_rate=90000.0),
    ])
    service = BatchRepricingService(RateCalculationService(rule_store=store), concurrency=2)
    stays = [
        make_stay(room_type="DBL"),
        make_stay(room_type="STE"),
        make_stay(room_type="STE", arrival=date(2024, 7, 1), departure=date(2024, 7, 4)),
    ]
    
    items = await service.run(stays)
    
    totals = {(i.stay.room_type, i.stay.arrival_date): i.result.total_amount for i in items}
    assert totals == {
        ("DBL", date(2024, 6, 3)): 100000.0,
        ("STE", date(2024, 6, 3)): 180000.0,
        ("STE", date(2024, 7, 1)): 270000.0,
    }
    for item in items:
        nights = [r.date for r in item.result.daily_rates]
        assert nights == sorted(nights)


@pytest.mark.asyncio
async def test_batch_respects_concurrency_bound(make_window, make_stay):
    """Test that no more than `concurrency` calculations read the store at once."""
    store = CountingRuleStore([make_window()], delay=0.02)
    service = BatchRepricingService(RateCalculationService(rule_store=store), concurrency=3)
    
    await service.run([make_stay() for _ in range(10)])
    
    assert store.max_in_flight <= 3


@pytest.mark.asyncio
async def test_batch_reports_item_errors(make_window, make_stay):
    """Test that one invalid stay does not fail the batch."""
    store = CountingRuleStore([make_window()])
    service = BatchRepricingService(RateCalculationService(rule_store=store))
    
    items = await service.run([
        make_stay(),
        make_stay(arrival=date(2024, 6, 5), departure=date(2024, 6, 5)),
    ])
    
    errors = [i.error for i in items if i.error]
    assert len(items) == 2
    assert len(errors) == 1
    assert errors[0]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_batch_yield_applies_to_every_stay(make_window, make_stay):
    """Test shared occupancy for the whole batch."""
    store = CountingRuleStore([make_window(base_rate=50000.0)])
    service = BatchRepricingService(RateCalculationService(rule_store=store))
    
    items = await service.run([make_stay(), make_stay()], occupancy=0.92)
    
    assert all(i.result.total_amount == 130000.0 for i in items)


@pytest.mark.asyncio
async def test_batch_timeout_cancels_workers(make_window, make_stay):
    """Test that a deadline aborts the batch and leaves no worker running."""
    store = CountingRuleStore([make_window()], delay=5)
    rate_service = RateCalculationService(rule_store=store, store_timeout=30)
    service = BatchRepricingService(rate_service, concurrency=2)
    
    with pytest.raises(BatchAbortedError):
        await service.run([make_stay() for _ in range(4)], timeout=0.05)
    
    assert store.in_flight == 0
    assert store.cancelled == 2


@pytest.mark.asyncio
async def test_batch_reports_bad_rule_rows_per_item(rate_service, seed_rules, sample_window_record, make_stay):
    """Test that an unparseable rule for one room type fails only that room type's stays."""
    seed_rules(windows=[
        sample_window_record,
        {**sample_window_record, "id": "win-single", "room_type": "SGL", "day_conditions": {"mon": {"stay": False}}},
    ])
    service = BatchRepricingService(rate_service)
    
    items = await service.run([make_stay(room_type="DBL"), make_stay(room_type="SGL")])
    
    by_room = {item.stay.room_type: item for item in items}
    assert len(items) == 2
    assert by_room["DBL"].result.total_amount == 100000.0
    assert by_room["SGL"].result is None
    assert by_room["SGL"].error["code"] == "invalid_rule_data"
    assert by_room["SGL"].error["room_type"] == "SGL"


@pytest.mark.asyncio
async def test_batch_rejects_out_of_range_occupancy_up_front(make_window, make_stay):
    """Test that a bad shared occupancy fails once, before any stay is priced."""
    store = CountingRuleStore([make_window()])
    service = BatchRepricingService(RateCalculationService(rule_store=store))
    
    with pytest.raises(YieldInputError):
        await service.run([make_stay(), make_stay()], occupancy=1.2)
    
    assert store.max_in_flight == 0
