"""Database session configuration."""

from __future__ import annotations

import logging
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from parley_broker.core.errors import Unavailable
from parley_broker.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import parley_broker.models  # noqa: E402,F401

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=settings.sql_debug,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def commit_or_unavailable(db: Session, action: str) -> None:
    """Commit the current transaction, mapping storage failures to ``Unavailable``.

    Args:
        db: Session holding the pending changes.
        action: Short name of the command, used in the log line and error detail.
    """
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Storage failure during %s: %s", action, exc)
        raise Unavailable(f"Storage unavailable during {action}") from exc
