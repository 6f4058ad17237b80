"""Database connection and session management."""
from typing import Any, Dict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from compute_relay.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Pool options; SQLite engines manage their own pool."""
    options: Dict[str, Any] = {"pool_pre_ping": True, "echo": settings.DATABASE_ECHO}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return options


# Create database engine
engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative models
Base = declarative_base()


def init_db() -> None:
    """Create all tables known to the declarative base."""
    # Import models so they register with Base before create_all
    from compute_relay.models.job import JobRecord  # noqa: F401

    Base.metadata.create_all(bind=engine)
