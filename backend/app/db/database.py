"""Database configuration and session management."""
import os
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings

Base = declarative_base()


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """Create an engine for the registry store.

    SQLite URLs get a single shared connection (StaticPool) so that
    in-memory databases survive across sessions.
    """
    database_url = database_url or settings.database_url

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True, echo=False)

    # Make sure the data directory exists for file-based SQLite
    path = database_url.replace("sqlite:///", "", 1)
    if path and path != database_url and path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)

    engine = create_engine(
        database_url,
        connect_args={
            "check_same_thread": False,  # Required for SQLite with async
            "timeout": 30  # Wait up to 30 seconds for lock
        },
        poolclass=StaticPool,  # StaticPool for SQLite - maintains single connection
        echo=False  # Set to True for SQL debugging
    )
    event.listen(engine, "connect", set_sqlite_pragma)
    return engine


def set_sqlite_pragma(dbapi_conn, connection_record):
    """Set SQLite pragmas for better performance and concurrency."""
    cursor = dbapi_conn.cursor()
    # Enable WAL mode for better concurrent read/write performance
    cursor.execute("PRAGMA journal_mode=WAL")
    # Enable foreign key constraints
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_session_factory(database_url: Optional[str] = None) -> sessionmaker:
    """Create a session factory bound to a fresh engine."""
    engine = create_db_engine(database_url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(session_factory: sessionmaker):
    """Initialize database tables."""
    from . import models  # noqa: F401  Import models to register them
    Base.metadata.create_all(bind=session_factory.kw["bind"])
