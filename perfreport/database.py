import logging
from typing import Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    """
    Build an engine for DATABASE_URL. SQLite needs cross-thread access since
    sessions are used from worker threads.
    """
    if not database_url:
        raise ValueError("DATABASE_URL is missing")

    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False}, future=True)

    return create_engine(
        database_url,
        pool_pre_ping=True,              # Detect broken connections
        pool_recycle=1800,
        pool_size=5,
        max_overflow=10,
        future=True,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def init_db(engine: Engine) -> None:
    """Create the tables if they don't exist."""
    try:
        # Import all models so they register with Base.metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully.")
    except SQLAlchemyError as e:
        logger.error("Database initialization failed: %s", e)
        raise


# DATABASE_URL -> session factory, shared by every request of the process.
_engines: Dict[str, Engine] = {}
_session_factories: Dict[str, sessionmaker] = {}


def get_session_factory(database_url: str) -> sessionmaker:
    """
    One engine and session factory per DATABASE_URL for the whole process.
    Tables are created on first use.
    """
    factory = _session_factories.get(database_url)
    if factory is None:
        engine = make_engine(database_url)
        init_db(engine)
        _engines[database_url] = engine
        factory = _session_factories[database_url] = make_session_factory(engine)
    return factory


def dispose_engines() -> None:
    """Dispose cached engine connections (call on app shutdown)."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    _session_factories.clear()
    logger.info("Database engines disposed.")
