import logging
from contextlib import contextmanager
from typing import Any
from typing import Iterator

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from ivms.config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()


Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):  # noqa: D401 – event hook
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(db_url: str, **kwargs) -> Engine:
    """Build an engine for *db_url*; SQLite connections get foreign keys and a busy timeout."""
    connect_args = kwargs.pop("connect_args", {})
    if "sqlite" in db_url:
        if "check_same_thread" not in connect_args:
            connect_args["check_same_thread"] = False
        connect_args.setdefault("timeout", 30)

    engine = create_engine(db_url, connect_args=connect_args, **kwargs)

    if "sqlite" in db_url:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Return the session class used for request and background sessions."""
    # Rows returned by services are serialised after commit.
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def resolve_database_url() -> str:
    """Return the configured URL, falling back to SQLite (in-memory for tests)."""

    if _settings.database_url:
        return _settings.database_url
    if _settings.testing:
        return "sqlite:///:memory:"
    return "sqlite:///./ivms.db"


# Default engine and sessionmaker instances for app usage.  Tests overwrite
# these via ``ivms.database.default_session_factory = …``.

default_engine = make_engine(resolve_database_url())
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the session factory currently in use by the application."""

    return default_session_factory


def get_db(session_factory: Any = None) -> Iterator[Session]:
    """FastAPI dependency yielding one session per request.

    Services commit explicitly; the session is only closed here.
    """
    factory = session_factory or get_session_factory()
    db = factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session(session_factory: Any = None):
    """Database session context manager for services and event handlers.

    1. Auto-commit on success
    2. Auto-rollback on error
    3. Always close session

    Usage:
        with db_session() as db:
            NotificationService(db).create(...)

    Args:
        session_factory: Optional custom session factory

    Yields:
        SQLAlchemy Session object with automatic lifecycle management
    """
    factory = session_factory or get_session_factory()
    session = factory()

    try:
        yield session
        session.commit()
        logger.debug("Database session committed successfully")

    except Exception as e:
        session.rollback()
        logger.error(f"Database session rolled back due to error: {e}")
        raise

    finally:
        session.close()
        logger.debug("Database session closed")


def initialize_database(engine: Engine = None) -> None:
    """Create all tables (and the partial unique indexes) on *engine* or the default engine."""
    # Import models so they are registered with Base before create_all.
    import ivms.models.models  # noqa: F401

    target_engine = engine or default_engine
    Base.metadata.create_all(bind=target_engine)
    logger.info("Database tables ensured: %s", sorted(Base.metadata.tables))
