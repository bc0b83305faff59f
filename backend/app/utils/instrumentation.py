"""
Server-side event logging helper.

Events go to the event_logs table (for querying) and to the structured log
(for immediate visibility). Event logging never changes a response.
"""
import logging
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, ProgrammingError
from app.models import EventLog
from app.database import SessionLocal

logger = logging.getLogger(__name__)


def _emit(event_name: str, properties: Optional[Dict[str, Any]], request_id: Optional[str]) -> None:
    logger.info(
        "event_logged",
        extra={"event_name": event_name, "request_id": request_id, "properties": properties},
    )


def log_event(
    db: Session,
    event_name: str,
    properties: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> None:
    """
    Log an event inside the caller's transaction.

    Does NOT commit; it flushes so the row is part of whatever the caller
    commits or rolls back.
    """
    try:
        db.add(EventLog(event_name=event_name, properties=properties, request_id=request_id))
        db.flush()
        _emit(event_name, properties, request_id)
    except Exception as e:
        logger.warning(
            "Failed to log event: event_name=%s, error=%s",
            event_name,
            str(e),
            exc_info=True,
        )


def log_event_best_effort(
    event_name: str,
    properties: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> None:
    """
    Log an event using a separate database session.

    Commits independently of the request's session, so read-only endpoints
    (recommendations, search) can record impressions. Never raises.
    """
    db = None
    try:
        db = SessionLocal()
        db.add(EventLog(event_name=event_name, properties=properties, request_id=request_id))
        db.commit()
        _emit(event_name, properties, request_id)
    except (OperationalError, ProgrammingError) as e:
        error_str = str(e).lower()
        if "does not exist" in error_str or "no such table" in error_str:
            logger.warning(
                "event_logs table missing; run alembic upgrade head. "
                "Event logging disabled until migration is applied."
            )
        else:
            logger.warning(
                "Failed to log event (database error): event_name=%s, error=%s",
                event_name,
                str(e),
                exc_info=True,
            )
        if db:
            db.rollback()
    except Exception as e:
        logger.warning(
            "Failed to log event: event_name=%s, error=%s",
            event_name,
            str(e),
            exc_info=True,
        )
        if db:
            db.rollback()
    finally:
        if db:
            db.close()
