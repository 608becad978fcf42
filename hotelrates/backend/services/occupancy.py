"""Occupancy sources feeding yield management."""
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable
import asyncio
import logging
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from hotelrates.backend.core.errors import StoreUnavailableError, YieldInputError
from hotelrates.backend.db.models import Room, Reservation


logger = logging.getLogger(__name__)

OCCUPYING_STATUSES = ("confirmed", "present")


class OccupancySource(ABC):
    """Supplies the occupancy fraction used for yield adjustment."""

    @abstractmethod
    async def get_occupancy(self, org_id: str, on_date: date) -> float:
        """Return occupancy in [0, 1] for an organisation on a date."""
        pass


class FixedOccupancySource(OccupancySource):
    """Constant occupancy, for batch runs and tests."""

    def __init__(self, occupancy: float):
        if not 0.0 <= occupancy <= 1.0:
            raise YieldInputError(f"Occupancy must be within [0, 1], got {occupancy}")
        self.occupancy = occupancy

    async def get_occupancy(self, org_id: str, on_date: date) -> float:
        return self.occupancy


class DatabaseOccupancySource(OccupancySource):
    """Occupancy computed from rooms and in-house or confirmed reservations."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def get_occupancy(self, org_id: str, on_date: date) -> float:
        try:
            return await asyncio.to_thread(self._compute, org_id, on_date)
        except SQLAlchemyError as e:
            logger.warning(f"Occupancy query failed for org {org_id}: {e}")
            raise StoreUnavailableError(f"Occupancy query failed: {e}", on_date=on_date) from e

    def _compute(self, org_id: str, on_date: date) -> float:
        db = self.session_factory()
        try:
            total_rooms = db.query(func.count(Room.id)).filter(
                Room.org_id == org_id
            ).scalar() or 0
            if total_rooms == 0:
                return 0.0

            # A reservation occupies the nights in [arrival, departure)
            occupied = db.query(func.count(func.distinct(Reservation.room_id))).filter(
                Reservation.org_id == org_id,
                Reservation.room_id.isnot(None),
                Reservation.status.in_(OCCUPYING_STATUSES),
                Reservation.date_arrival <= on_date,
                Reservation.date_departure > on_date
            ).scalar() or 0

            return min(occupied / total_rooms, 1.0)
        finally:
            db.close()
