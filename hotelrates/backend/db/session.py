"""Database session management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from hotelrates.backend.core.config import settings
import os


# Create engine with SQLite-specific configuration
if settings.database_url.startswith("sqlite"):
    # Ensure directory exists for SQLite
    db_path = settings.database_url.replace("sqlite:///", "")
    if db_path == ":memory:":
        # One shared connection, otherwise each thread sees an empty database
        engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False
        )
    else:
        os.makedirs(os.path.dirname(db_path) if os.path.dirname(db_path) else ".", exist_ok=True)
        engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            echo=False
        )
else:
    engine = create_engine(settings.database_url, echo=False)


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

