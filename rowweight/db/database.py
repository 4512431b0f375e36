"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with an
in-memory SQLite fallback and exposes a session dependency.
"""
import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"

_POSTGRES_VARS = ("POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_DB")


def _get_database_url() -> str:
    # If DATABASE_URL is explicitly set, use it
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components once any of them is set
    values = {name: os.getenv(name) for name in _POSTGRES_VARS}
    if not any(values.values()):
        return SQLITE_MEMORY_URL

    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return (
        f"postgresql://{values['POSTGRES_USER']}:{values['POSTGRES_PASSWORD']}"
        f"@{values['POSTGRES_HOST']}:{values['POSTGRES_PORT']}/{values['POSTGRES_DB']}"
    )


def build_engine(url: Optional[str] = None) -> Engine:
    """Create an engine for ``url`` (resolved from the environment when omitted).

    In-memory SQLite gets a StaticPool so every session shares the one
    connection holding the schema.
    """
    url = url or _get_database_url()
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure(url: Optional[str] = None) -> Engine:
    """Rebind the module-level engine and ``SessionLocal`` to ``url``."""
    global engine, SessionLocal
    new_engine = build_engine(url)
    engine.dispose()
    engine = new_engine
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=new_engine)
    return new_engine


def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
