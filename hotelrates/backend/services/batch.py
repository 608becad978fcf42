"""Batch re-pricing across many room types and date ranges."""
from typing import List, Optional
import asyncio
import logging
from hotelrates.backend.core.config import settings
from hotelrates.backend.core.errors import BatchAbortedError, RateEngineError
from hotelrates.backend.schemas.batch import BatchItemResult
from hotelrates.backend.schemas.rates import StayRequest
from hotelrates.backend.services.rate_calculation import RateCalculationService


logger = logging.getLogger(__name__)


class BatchRepricingService:
    """
    Prices many stays concurrently, e.g. for a yield refresh job.

    Each stay is an independent calculation; a semaphore caps how many hit
    the rule store at once. Items come back in completion order.
    """

    def __init__(self, rate_service: RateCalculationService, concurrency: Optional[int] = None):
        """
        Initialize batch re-pricing service.

        Args:
            rate_service: Service used for every stay
            concurrency: Max calculations in flight (defaults to settings.batch_concurrency)
        """
        self.rate_service = rate_service
        self.concurrency = concurrency or settings.batch_concurrency

    async def run(
        self,
        stays: List[StayRequest],
        occupancy: Optional[float] = None,
        timeout: Optional[float] = None
    ) -> List[BatchItemResult]:
        """
        Price every stay.

        Args:
            stays: Stays to price
            occupancy: Optional occupancy applied to every stay
            timeout: Deadline in seconds for the whole batch

        Returns:
            One BatchItemResult per stay; calculation errors are reported per item

        Raises:
            YieldInputError: Occupancy outside [0, 1], raised before any stay is priced
            BatchAbortedError: Deadline exceeded; all outstanding work is cancelled
        """
        if occupancy is not None:
            self.rate_service.yield_adjuster.check_occupancy(occupancy)

        semaphore = asyncio.Semaphore(self.concurrency)
        items: List[BatchItemResult] = []

        async def worker(stay: StayRequest) -> None:
            async with semaphore:
                try:
                    result = await self.rate_service.calculate(stay, occupancy=occupancy)
                    item = BatchItemResult(stay=stay, result=result)
                except RateEngineError as e:
                    logger.warning(f"Batch item {stay.room_type} {stay.arrival_date} failed: {e.message}")
                    item = BatchItemResult(stay=stay, error=e.to_dict())
            items.append(item)

        tasks = [asyncio.create_task(worker(stay)) for stay in stays]
        try:
            async with asyncio.timeout(timeout):
                await asyncio.gather(*tasks)
        except TimeoutError as e:
            await self._cancel(tasks)
            logger.warning(f"Batch aborted after {timeout}s, {len(items)} of {len(stays)} stays priced")
            raise BatchAbortedError(
                f"Batch re-pricing exceeded {timeout}s ({len(items)} of {len(stays)} stays priced)"
            ) from e
        except Exception:
            await self._cancel(tasks)
            raise

        logger.info(f"Batch re-pricing finished: {len(items)} stays")
        return items

    async def _cancel(self, tasks: List[asyncio.Task]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
