"""Pytest configuration and fixtures."""
import pytest
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from hotelrates.backend.db.models import Base, RateWindowRecord, SeasonalRateRecord
from hotelrates.backend.api.rates import get_rate_service
from hotelrates.backend.main import app
from hotelrates.backend.schemas.rates import RateWindow, SeasonalRate, StayRequest
from hotelrates.backend.services.occupancy import DatabaseOccupancySource
from hotelrates.backend.services.rate_calculation import RateCalculationService
from hotelrates.backend.services.rule_cache import CachedRuleStore
from hotelrates.backend.services.rule_store import RuleStore, SqlRuleStore
from fastapi.testclient import TestClient
import tempfile
import os


ORG_ID = "org-1"


class MemoryRuleStore(RuleStore):
    """Rule store over plain lists, counting fetches."""

    def __init__(self, windows=None, seasonal_rates=None):
        self.windows = list(windows or [])
        self.seasonal_rates = list(seasonal_rates or [])
        self.window_calls = 0
        self.seasonal_calls = 0

    async def get_windows(self, org_id, room_type, start, end):
        self.window_calls += 1
        return [
            w for w in self.windows
            if w.org_id == org_id
            and w.is_active
            and w.valid_from <= end and w.valid_until >= start
            and (w.room_type is None or room_type is None or w.room_type == room_type)
        ]

    async def get_seasonal_rates(self, org_id, room_type, start, end):
        self.seasonal_calls += 1
        return [
            s for s in self.seasonal_rates
            if s.org_id == org_id
            and s.is_active
            and s.room_type == room_type
            and s.valid_from <= end and s.valid_until >= start
        ]


@pytest.fixture(scope="function")
def session_factory():
    """Create a session factory bound to a temporary database."""
    # Create temporary SQLite database
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)
    
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        os.unlink(db_path)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def rate_service(session_factory):
    """Rate service reading the test database through the rule cache."""
    return RateCalculationService(
        rule_store=CachedRuleStore(SqlRuleStore(session_factory)),
        occupancy_source=DatabaseOccupancySource(session_factory),
        store_timeout=5.0
    )


@pytest.fixture(scope="function")
def client(rate_service):
    """Create a test client."""
    app.dependency_overrides[get_rate_service] = lambda: rate_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_window():
    """Factory for RateWindow models with permissive defaults."""
    def _make(window_id="w1", **overrides):
        data = {
            "id": window_id,
            "org_id": ORG_ID,
            "room_type": None,
            "valid_from": date(2024, 1, 1),
            "valid_until": date(2024, 12, 31),
            "base_rate": 50000.0,
            "priority": 0,
        }
        data.update(overrides)
        return RateWindow(**data)
    return _make


@pytest.fixture
def make_season():
    """Factory for SeasonalRate models."""
    def _make(season_id="s1", **overrides):
        data = {
            "id": season_id,
            "org_id": ORG_ID,
            "room_type": "DBL",
            "name": "High season",
            "valid_from": date(2024, 1, 1),
            "valid_until": date(2024, 12, 31),
            "base_rate": 30000.0,
        }
        data.update(overrides)
        return SeasonalRate(**data)
    return _make


@pytest.fixture
def make_stay():
    """Factory for StayRequest models."""
    def _make(arrival=date(2024, 6, 3), departure=date(2024, 6, 5), **overrides):
        data = {
            "org_id": ORG_ID,
            "room_type": "DBL",
            "arrival_date": arrival,
            "departure_date": departure,
            "adults": 2,
            "children": 0,
        }
        data.update(overrides)
        return StayRequest(**data)
    return _make


@pytest.fixture
def memory_store():
    """Factory for in-memory rule stores."""
    def _make(windows=None, seasonal_rates=None):
        return MemoryRuleStore(windows, seasonal_rates)
    return _make


@pytest.fixture
def sample_window_record():
    """Sample rate window row data for the test database."""
    return {
        "id": "win-standard",
        "org_id": ORG_ID,
        "code": "STD",
        "name": "Standard",
        "room_type": "DBL",
        "valid_from": date(2024, 1, 1),
        "valid_until": date(2024, 12, 31),
        "day_conditions": {},
        "base_rate": 50000.0,
        "single_rate": 40000.0,
        "extra_person_rate": 10000.0,
        "priority": 5,
        "is_active": True
    }


@pytest.fixture
def seed_rules(db_session):
    """Insert rate window and seasonal rate rows."""
    def _seed(windows=(), seasonal_rates=()):
        for data in windows:
            db_session.add(RateWindowRecord(**data))
        for data in seasonal_rates:
            db_session.add(SeasonalRateRecord(**data))
        db_session.commit()
    return _seed
