"""Rule store interface and implementations."""
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Callable, Iterable, List, Optional, Type, TypeVar
import asyncio
import logging
import aiohttp
from aiohttp import ClientTimeout
from pydantic import BaseModel, ValidationError
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from hotelrates.backend.core.errors import RuleDataError, StoreUnavailableError
from hotelrates.backend.db.models import RateWindowRecord, SeasonalRateRecord
from hotelrates.backend.schemas.rates import RateWindow, SeasonalRate


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Characters that must be quoted inside a PostgREST or=(...) filter
POSTGREST_RESERVED = ",.:()\"\\"


def rank_windows(windows: Iterable[RateWindow]) -> List[RateWindow]:
    """Order windows by priority descending, then id, independent of input order."""
    return sorted(windows, key=lambda w: (-w.priority, w.id))


def parse_rows(
    model: Type[ModelT],
    rows: Iterable[Any],
    room_type: Optional[str],
    start: date
) -> List[ModelT]:
    """
    Validate stored rows into rule models.

    Raises:
        RuleDataError: A row does not describe a valid rule
    """
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            row_id = row.get("id") if isinstance(row, dict) else getattr(row, "id", None)
            logger.warning(f"Invalid {model.__name__} row {row_id}: {e}")
            raise RuleDataError(
                f"Invalid {model.__name__} row {row_id}: {e.error_count()} validation errors",
                room_type=room_type,
                on_date=start
            ) from e
    return parsed


def quote_filter_value(value: str) -> str:
    """Double-quote a PostgREST logical filter value containing reserved characters."""
    if any(char in POSTGREST_RESERVED for char in value) or value != value.strip():
        escaped = value.replace("\\", "\\\\").replace("\"", "\\\"")
        return f"\"{escaped}\""
    return value


class RuleStore(ABC):
    """Read-only access to rate windows and seasonal rates."""

    @abstractmethod
    async def get_windows(
        self,
        org_id: str,
        room_type: Optional[str],
        start: date,
        end: date
    ) -> List[RateWindow]:
        """
        Get active rate windows intersecting a date range.

        Args:
            org_id: Organisation identifier
            room_type: Room type filter; windows without a room type are always included
            start: First night of the range
            end: Last night of the range (inclusive)

        Returns:
            Windows ordered by priority descending
        """
        pass

    @abstractmethod
    async def get_seasonal_rates(
        self,
        org_id: str,
        room_type: str,
        start: date,
        end: date
    ) -> List[SeasonalRate]:
        """
        Get active seasonal rates for one room type intersecting a date range.

        Args:
            org_id: Organisation identifier
            room_type: Room type
            start: First night of the range
            end: Last night of the range (inclusive)

        Returns:
            Seasonal rates for the room type
        """
        pass


class SqlRuleStore(RuleStore):
    """Rule store backed by the application database."""

    def __init__(self, session_factory: Callable[[], Session]):
        """
        Initialize SQL rule store.

        Args:
            session_factory: Callable returning a new SQLAlchemy session; each
                query runs in a worker thread with its own session
        """
        self.session_factory = session_factory

    async def get_windows(
        self,
        org_id: str,
        room_type: Optional[str],
        start: date,
        end: date
    ) -> List[RateWindow]:
        return await self._run(self._query_windows, org_id, room_type, start, end)

    async def get_seasonal_rates(
        self,
        org_id: str,
        room_type: str,
        start: date,
        end: date
    ) -> List[SeasonalRate]:
        return await self._run(self._query_seasonal_rates, org_id, room_type, start, end)

    async def _run(self, query, org_id: str, room_type: Optional[str], start: date, end: date):
        try:
            return await asyncio.to_thread(query, org_id, room_type, start, end)
        except SQLAlchemyError as e:
            logger.warning(f"Rule store query failed for org {org_id}: {e}")
            raise StoreUnavailableError(
                f"Rule store query failed: {e}",
                room_type=room_type,
                on_date=start
            ) from e

    def _query_windows(
        self,
        org_id: str,
        room_type: Optional[str],
        start: date,
        end: date
    ) -> List[RateWindow]:
        db = self.session_factory()
        try:
            query = db.query(RateWindowRecord).filter(
                RateWindowRecord.org_id == org_id,
                RateWindowRecord.is_active.is_(True),
                RateWindowRecord.valid_from <= end,
                RateWindowRecord.valid_until >= start
            )
            if room_type:
                query = query.filter(
                    or_(
                        RateWindowRecord.room_type.is_(None),
                        RateWindowRecord.room_type == room_type
                    )
                )
            rows = query.order_by(
                RateWindowRecord.priority.desc(),
                RateWindowRecord.id.asc()
            ).all()
            return parse_rows(RateWindow, rows, room_type, start)
        finally:
            db.close()

    def _query_seasonal_rates(
        self,
        org_id: str,
        room_type: str,
        start: date,
        end: date
    ) -> List[SeasonalRate]:
        db = self.session_factory()
        try:
            rows = db.query(SeasonalRateRecord).filter(
                SeasonalRateRecord.org_id == org_id,
                SeasonalRateRecord.room_type == room_type,
                SeasonalRateRecord.is_active.is_(True),
                SeasonalRateRecord.valid_from <= end,
                SeasonalRateRecord.valid_until >= start
            ).order_by(SeasonalRateRecord.id.asc()).all()
            return parse_rows(SeasonalRate, rows, room_type, start)
        finally:
            db.close()


class PostgrestRuleStore(RuleStore):
    """Rule store reading a managed PostgREST backend (e.g. Supabase)."""

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 10.0):
        """
        Initialize PostgREST rule store.

        Args:
            base_url: Project URL, without the /rest/v1 suffix
            api_key: Service or anon API key
            timeout_seconds: Total timeout per request
        """
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json"
        }
        self.timeout = ClientTimeout(total=timeout_seconds)

    async def get_windows(
        self,
        org_id: str,
        room_type: Optional[str],
        start: date,
        end: date
    ) -> List[RateWindow]:
        params = [
            ("select", "*"),
            ("org_id", f"eq.{org_id}"),
            ("is_active", "is.true"),
            ("valid_from", f"lte.{end.isoformat()}"),
            ("valid_until", f"gte.{start.isoformat()}"),
            ("order", "priority.desc,id.asc")
        ]
        if room_type:
            room_filter = quote_filter_value(room_type)
            params.append(("or", f"(room_type.is.null,room_type.eq.{room_filter})"))

        rows = await self._select("rate_windows", params, room_type, start)
        # PostgREST ordering is not trusted, priority resolution needs a stable order
        return rank_windows(parse_rows(RateWindow, rows, room_type, start))

    async def get_seasonal_rates(
        self,
        org_id: str,
        room_type: str,
        start: date,
        end: date
    ) -> List[SeasonalRate]:
        params = [
            ("select", "*"),
            ("org_id", f"eq.{org_id}"),
            ("room_type", f"eq.{room_type}"),
            ("is_active", "is.true"),
            ("valid_from", f"lte.{end.isoformat()}"),
            ("valid_until", f"gte.{start.isoformat()}"),
            ("order", "id.asc")
        ]
        rows = await self._select("seasonal_rates", params, room_type, start)
        return parse_rows(SeasonalRate, rows, room_type, start)

    async def _select(
        self,
        table: str,
        params: list,
        room_type: Optional[str],
        start: date
    ) -> list:
        """Run a PostgREST select and return the decoded rows."""
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, headers=self.headers, params=params) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        raise StoreUnavailableError(
                            f"Rule store error on {table}: {resp.status} - {error_text}",
                            room_type=room_type,
                            on_date=start
                        )
                    rows = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Rule store request to {table} failed: {e!r}")
            raise StoreUnavailableError(
                f"Rule store unreachable ({table}): {e!r}",
                room_type=room_type,
                on_date=start
            ) from e

        if not isinstance(rows, list):
            raise StoreUnavailableError(
                f"Unexpected rule store payload for {table}",
                room_type=room_type,
                on_date=start
            )
        return rows
