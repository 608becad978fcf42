"""Error taxonomy for the rate engine."""
from datetime import date
from typing import Any, Dict, Optional


class RateEngineError(Exception):
    """Base class for every error the rate engine surfaces to callers."""
    
    code = "rate_engine_error"
    
    def __init__(
        self,
        message: str,
        room_type: Optional[str] = None,
        on_date: Optional[date] = None
    ):
        super().__init__(message)
        self.message = message
        self.room_type = room_type
        self.on_date = on_date
    
    def to_dict(self) -> Dict[str, Any]:
        """Serialise the error for API responses and logs."""
        return {
            "code": self.code,
            "message": self.message,
            "room_type": self.room_type,
            "date": self.on_date.isoformat() if self.on_date else None
        }


class StayValidationError(RateEngineError):
    """Malformed stay request, rejected before any store access."""
    code = "validation_error"


class StoreUnavailableError(RateEngineError):
    """Rule or occupancy store could not be read."""
    code = "store_unavailable"


class YieldInputError(RateEngineError):
    """Occupancy fraction outside [0, 1]."""
    code = "yield_input_error"


class BatchAbortedError(RateEngineError):
    """Batch re-pricing run exceeded its deadline and was cancelled."""
    code = "batch_aborted"


class RuleDataError(RateEngineError):
    """Stored rate window or seasonal rate row could not be parsed."""
    code = "invalid_rule_data"
