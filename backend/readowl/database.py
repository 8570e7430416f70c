from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from readowl.core.config import settings
import logging
import time

logger = logging.getLogger(__name__)

logger.info("READOWL DATABASE_URL = %s", settings.get_masked_database_url())


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    kwargs = {"connect_args": {"check_same_thread": False}}
    # In-memory SQLite lives as long as its single connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,  # Keep echo off - we'll log slow queries separately
    **_engine_kwargs(settings.DATABASE_URL),
)

if settings.is_sqlite:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Add slow query logging (DEBUG mode only)
if settings.DEBUG:
    SLOW_QUERY_THRESHOLD_MS = 200.0

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        """Store query start time before execution."""
        context._query_start_time = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        """Log slow queries after execution."""
        if hasattr(context, "_query_start_time"):
            elapsed_ms = (time.perf_counter() - context._query_start_time) * 1000
            if elapsed_ms >= SLOW_QUERY_THRESHOLD_MS:
                statement_first_line = statement.split("\n")[0].strip()[:100]
                logger.warning(
                    f"SLOW_QUERY: {elapsed_ms:.2f}ms - {statement_first_line}"
                )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Ensure all tables exist.

    create_all() only creates missing tables; it never alters existing ones.
    This imports all models so that Base.metadata includes all table definitions.
    """
    from readowl import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
