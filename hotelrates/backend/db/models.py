"""SQLAlchemy 2.0 database models."""
from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, JSON, Boolean, Float
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime
import uuid


Base = declarative_base()


class RateWindowRecord(Base):
    """Rate window pricing rule, maintained by administration tooling."""
    __tablename__ = "rate_windows"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String, nullable=False, index=True)
    code = Column(String, nullable=True)
    name = Column(String, nullable=True)
    room_type = Column(String, nullable=True, index=True)  # NULL applies to every room type
    valid_from = Column(Date, nullable=False, index=True)
    valid_until = Column(Date, nullable=False, index=True)
    day_conditions = Column(JSON, default=dict)  # {"monday": {"arrival": bool, ...}, ...}
    base_rate = Column(Float, nullable=False)
    single_rate = Column(Float, nullable=True)
    extra_person_rate = Column(Float, nullable=True)
    min_stay = Column(Integer, nullable=True)
    max_stay = Column(Integer, nullable=True)
    guest_types = Column(JSON, default=list)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SeasonalRateRecord(Base):
    """Seasonal base rate for a room type."""
    __tablename__ = "seasonal_rates"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String, nullable=False, index=True)
    room_type = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    season_type = Column(String, nullable=True)  # high, low, shoulder, peak
    valid_from = Column(Date, nullable=False, index=True)
    valid_until = Column(Date, nullable=False, index=True)
    base_rate = Column(Float, nullable=False)
    weekend_rate = Column(Float, nullable=True)
    multiplier = Column(Float, nullable=False, default=1.0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Room(Base):
    """Physical room, read for occupancy."""
    __tablename__ = "rooms"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String, nullable=False, index=True)
    number = Column(String, nullable=False)
    room_type = Column(String, nullable=True)
    
    # Relationships
    reservations = relationship("Reservation", back_populates="room")


class Reservation(Base):
    """Reservation, read for occupancy."""
    __tablename__ = "reservations"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String, nullable=False, index=True)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=True, index=True)
    date_arrival = Column(Date, nullable=False)
    date_departure = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="confirmed")  # confirmed, present, cancelled, ...
    
    # Relationships
    room = relationship("Room", back_populates="reservations")
