# app/db/session.py
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

# SQLite DB (relative file ./accounts.db) unless DATABASE_URL says otherwise
DEFAULT_DATABASE_URL = "sqlite:///./accounts.db"


def database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def make_engine(url: str | None = None) -> Engine:
    """
    Build the engine for one application instance.
    The caller owns it and must dispose() it on shutdown.
    """
    url = url or database_url()
    is_sqlite = url.startswith("sqlite")
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False} if is_sqlite else {},  # required for SQLite + threads
        pool_pre_ping=True,  # safer reconnects
        future=True,
    )

    if is_sqlite:
        # Enforce foreign keys in SQLite
        @event.listens_for(engine, "connect")
        def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )
