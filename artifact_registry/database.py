"""Database configuration and session management."""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from artifact_registry.config import get_settings

settings = get_settings()


def build_engine(database_url: str) -> Engine:
    """Create an engine for PostgreSQL, or SQLite for local runs."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session.

    Each request gets its own session, and so its own transaction.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables. Deployments run the Alembic revision instead."""
    # Import models so they are registered with Base.metadata
    from artifact_registry import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
