"""Batch re-pricing Pydantic schemas."""
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from hotelrates.backend.schemas.rates import StayRequest, RateCalculationResult


class BatchRequest(BaseModel):
    """Schema for a batch re-pricing run."""
    stays: List[StayRequest] = Field(..., min_length=1, description="Stays to price")
    occupancy: Optional[float] = Field(None, ge=0, le=1, description="Occupancy fraction applied to every stay")
    timeout_seconds: Optional[float] = Field(None, gt=0, description="Deadline for the whole batch")


class BatchItemResult(BaseModel):
    """Outcome for one stay of a batch."""
    stay: StayRequest
    result: Optional[RateCalculationResult] = None
    error: Optional[Dict[str, Any]] = None


class BatchResponse(BaseModel):
    """Schema for batch re-pricing response."""
    items: List[BatchItemResult]
    succeeded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
