"""Rate calculation API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from datetime import date
from typing import Optional
from hotelrates.backend.core.errors import (
    RateEngineError,
    StayValidationError,
    StoreUnavailableError,
    YieldInputError,
    BatchAbortedError,
    RuleDataError,
)
from hotelrates.backend.db.session import SessionLocal
from hotelrates.backend.schemas.batch import BatchRequest, BatchResponse
from hotelrates.backend.schemas.rates import RateCalculationRequest, RateCalculationResult, OccupancyReading
from hotelrates.backend.services.batch import BatchRepricingService
from hotelrates.backend.services.occupancy import DatabaseOccupancySource
from hotelrates.backend.services.rate_calculation import RateCalculationService
from hotelrates.backend.services.rule_cache import CachedRuleStore

router = APIRouter()
rate_service = RateCalculationService(occupancy_source=DatabaseOccupancySource(SessionLocal))

ERROR_STATUS = {
    StayValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    YieldInputError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    RuleDataError: status.HTTP_503_SERVICE_UNAVAILABLE,
    BatchAbortedError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def get_rate_service() -> RateCalculationService:
    """Dependency returning the shared rate service (and its rule cache)."""
    return rate_service


def to_http_error(error: RateEngineError) -> HTTPException:
    """Map an engine error to an HTTP error carrying its details."""
    status_code = ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=error.to_dict())


@router.post("/rates/calculate", response_model=RateCalculationResult)
async def calculate_rate(
    request: RateCalculationRequest,
    service: RateCalculationService = Depends(get_rate_service)
):
    """Calculate the price of a stay, optionally yield-adjusted."""
    stay = request.to_stay()
    try:
        if request.use_current_occupancy:
            return await service.calculate_with_current_occupancy(stay)
        return await service.calculate(stay, occupancy=request.occupancy)
    except RateEngineError as e:
        raise to_http_error(e)


@router.post("/rates/batch", response_model=BatchResponse)
async def batch_calculate(
    request: BatchRequest,
    service: RateCalculationService = Depends(get_rate_service)
):
    """Price many stays concurrently."""
    batch_service = BatchRepricingService(service)
    try:
        items = await batch_service.run(
            request.stays,
            occupancy=request.occupancy,
            timeout=request.timeout_seconds
        )
    except RateEngineError as e:
        raise to_http_error(e)

    failed = sum(1 for item in items if item.error is not None)
    return BatchResponse(items=items, succeeded=len(items) - failed, failed=failed)


@router.post("/rates/cache/invalidate")
async def invalidate_rule_cache(
    org_id: Optional[str] = Query(None, description="Only drop this organisation's entries"),
    service: RateCalculationService = Depends(get_rate_service)
):
    """Drop cached rate windows and seasonal rates after administrative edits."""
    evicted = 0
    if isinstance(service.rule_store, CachedRuleStore):
        evicted = service.rule_store.invalidate(org_id)
    return {"evicted": evicted}


@router.get("/occupancy", response_model=OccupancyReading)
async def get_occupancy(
    org_id: str = Query(..., description="Organisation identifier"),
    on_date: date = Query(..., description="Night to measure"),
    service: RateCalculationService = Depends(get_rate_service)
):
    """Current occupancy fraction used for yield management."""
    if service.occupancy_source is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No occupancy source configured"
        )
    try:
        occupancy = await service.occupancy_source.get_occupancy(org_id, on_date)
    except RateEngineError as e:
        raise to_http_error(e)
    return OccupancyReading(org_id=org_id, on_date=on_date, occupancy=occupancy)
