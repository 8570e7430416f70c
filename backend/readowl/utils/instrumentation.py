"""
Server-side event logging helper.

Logs events to both the database (for querying) and structured logs (for immediate visibility).
"""
import logging
from typing import Optional, Dict, Any
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, OperationalError, ProgrammingError
from readowl.models import EventLog
from readowl import database

logger = logging.getLogger(__name__)


def _emit_log(
    event_name: str,
    user_id: Optional[UUID],
    properties: Optional[Dict[str, Any]],
    request_id: Optional[str],
    session_id: Optional[str],
) -> None:
    logger.info("event_logged", extra={
        "event_name": event_name,
        "user_id": str(user_id) if user_id else None,
        "request_id": request_id,
        "session_id": session_id,
        "properties": properties,
    })


def log_event(
    db: Session,
    event_name: str,
    user_id: Optional[UUID] = None,
    properties: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> None:
    """
    Log an event to the database and structured logs.

    Args:
        db: Database session
        event_name: Name of the event (e.g., "book_created", "chapter_published")
        user_id: Optional user ID (UUID)
        properties: Optional dict of event properties
        request_id: Optional request ID for correlating events
        session_id: Optional session ID

    Note: This function does NOT commit the transaction. The caller should commit.
    The insert runs inside a SAVEPOINT, so a failed write is rolled back on its
    own and the caller's transaction stays usable.
    """
    try:
        with db.begin_nested():
            db.add(EventLog(
                event_name=event_name,
                user_id=user_id,
                properties=properties,
                request_id=request_id,
                session_id=session_id,
            ))
        _emit_log(event_name, user_id, properties, request_id, session_id)
    except SQLAlchemyError as e:
        # Never break the request path - log warning and continue
        logger.warning(
            "Failed to log event: event_name=%s, user_id=%s, error=%s",
            event_name,
            user_id,
            str(e),
            exc_info=True,
        )


def log_event_best_effort(
    event_name: str,
    user_id: Optional[UUID] = None,
    properties: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> None:
    """
    Log an event using a separate database session (best-effort, non-blocking).

    This function creates its own database session and commits independently,
    so it will never break the main business transaction.

    This function never raises exceptions - failures are logged as warnings.
    """
    db = None
    try:
        db = database.SessionLocal()
        db.add(EventLog(
            event_name=event_name,
            user_id=user_id,
            properties=properties,
            request_id=request_id,
            session_id=session_id,
        ))
        db.commit()
        _emit_log(event_name, user_id, properties, request_id, session_id)
    except (OperationalError, ProgrammingError) as e:
        error_str = str(e).lower()
        if "does not exist" in error_str or "no such table" in error_str:
            logger.warning(
                "event_logs table missing - call init_db(). "
                "Event logging disabled until the table exists."
            )
        else:
            logger.warning(
                "Failed to log event (database error): event_name=%s, user_id=%s, error=%s",
                event_name,
                user_id,
                str(e),
                exc_info=True,
            )
        if db:
            db.rollback()
    except Exception as e:
        # Never break the request path - log warning and continue
        logger.warning(
            "Failed to log event: event_name=%s, user_id=%s, error=%s",
            event_name,
            user_id,
            str(e),
            exc_info=True,
        )
        if db:
            db.rollback()
    finally:
        if db:
            db.close()
