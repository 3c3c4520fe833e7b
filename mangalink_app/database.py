"""
================================================================================
MangaLink - Database Configuration
================================================================================
SQLAlchemy database connection and session management.

USAGE:
    from mangalink_app.database import get_db_session, init_database

    init_database()

    with get_db_session() as session:
        record = session.query(ReadingProgressRecord).first()

CONFIGURATION:
    Set environment variable: DATABASE_URL
    Fallback: SQLite file next to the package for development
================================================================================
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

def get_database_url() -> str:
    """
    Get database URL from environment or use SQLite fallback.

    Priority:
      1. DATABASE_URL environment variable
      2. Fallback to SQLite (mangalink.db)
    """
    db_url = os.environ.get('DATABASE_URL')

    if db_url:
        # Handle Heroku's postgres:// -> postgresql://
        if db_url.startswith('postgres://'):
            db_url = db_url.replace('postgres://', 'postgresql://', 1)
        return db_url

    sqlite_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'mangalink.db')
    logger.warning(f"DATABASE_URL not set. Using SQLite fallback: {sqlite_path}")
    return f'sqlite:///{sqlite_path}'


def create_db_engine(db_url: Optional[str] = None) -> Engine:
    """
    Create SQLAlchemy engine.

    SQLite: WAL mode, usable from executor threads. In-memory SQLite keeps a
    single shared connection so every session sees the same tables.
    """
    db_url = db_url or get_database_url()
    is_sqlite = db_url.startswith('sqlite')

    if not is_sqlite:
        engine = create_engine(db_url, pool_pre_ping=True, pool_recycle=3600)
        logger.info("Database engine created: server database")
        return engine

    in_memory = db_url in ('sqlite://', 'sqlite:///:memory:')
    options = {'connect_args': {'check_same_thread': False}}
    if in_memory:
        options['poolclass'] = StaticPool
    engine = create_engine(db_url, **options)

    if not in_memory:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    logger.info(f"Database engine created: SQLite ({'memory' if in_memory else 'file'})")
    return engine


_engine: Optional[Engine] = None
_SessionLocal = None


def get_engine() -> Engine:
    """Get or create the global database engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def configure_engine(engine: Engine) -> None:
    """Swap the global engine (app factory, tests)."""
    global _engine, _SessionLocal
    _engine = engine
    _SessionLocal = None


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,  # Keep objects usable after commit
        )
    return _SessionLocal


# =============================================================================
# SESSION MANAGEMENT
# =============================================================================

@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back and re-raises on error, always closes.
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        session.close()


def init_database(drop_existing: bool = False) -> None:
    """Create all tables (optionally dropping them first)."""
    engine = get_engine()

    if drop_existing:
        logger.warning("Dropping all tables")
        Base.metadata.drop_all(engine)

    Base.metadata.create_all(engine)
    logger.info("Database tables ready")
