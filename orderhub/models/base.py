"""
Base database model and engine/session management
"""
import os
from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from orderhub.config import get_settings
from orderhub.utils.logger import log

# Base class for all models
Base = declarative_base()


def _resolve_url(url: str) -> str:
    # Resolve relative SQLite paths to absolute so cwd changes can't break it
    if url.startswith("sqlite:///") and not url.startswith("sqlite:////"):
        rel_path = url[len("sqlite:///"):]
        if rel_path and rel_path != ":memory:":
            return "sqlite:///" + os.path.abspath(rel_path)
    return url


def create_db_engine(database_url: str, statement_timeout_ms: int = 0) -> Engine:
    """Create an engine tuned for the backend in use."""
    url = _resolve_url(database_url)
    settings = get_settings()

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
        )

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    connect_args = {}
    if statement_timeout_ms and url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={statement_timeout_ms}"

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=300,
        connect_args=connect_args,
    )


@lru_cache()
def get_engine() -> Engine:
    """Process-wide engine built from settings."""
    settings = get_settings()
    log.info(f"Connecting to database ({settings.database_url.split('://')[0]})")
    return create_db_engine(settings.database_url, settings.statement_timeout_ms)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
