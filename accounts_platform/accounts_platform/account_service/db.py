"""
Database connection and session management for the account service
"""
from contextlib import contextmanager
from typing import Generator, Iterator
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings
from .errors import InfrastructureFailure

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    options = {"pool_pre_ping": True}
    # In-memory SQLite runs on a single-connection pool without overflow
    if ":memory:" not in settings.DATABASE_URL:
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
        )
    if settings.DATABASE_URL.startswith("sqlite"):
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.DB_POOL_TIMEOUT_SECONDS,
        }
    if settings.DB_ISOLATION_LEVEL:
        options["isolation_level"] = settings.DB_ISOLATION_LEVEL
    return options


engine = create_engine(settings.DATABASE_URL, **_engine_options())
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless asked per connection
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_db() -> None:
    """
    Create all tables. Called on application startup.
    """
    from . import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency yielding one pooled session per request.

    The connection goes back to the pool on every exit path.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a read-verify-write sequence as one unit of work.

    Commits when the block exits normally and rolls back otherwise.
    Driver and constraint errors surface as InfrastructureFailure; every
    other exception is re-raised untouched after the rollback.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Database operation failed: %s", e.__class__.__name__)
        raise InfrastructureFailure() from e
    except Exception:
        db.rollback()
        raise
