"""
Admin view over the server-side event log.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from readowl.core.auth import get_admin_user
from readowl.database import get_db
from readowl.models import EventLog, User

router = APIRouter(prefix="/admin/events", tags=["events"])


@router.get("/recent")
def get_recent_events(
    limit: int = Query(20, ge=1, le=200),
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    events = (
        db.query(EventLog)
        .order_by(EventLog.created_at.desc())
        .limit(limit)
        .all()
    )
    return {
        "events": [
            {
                "id": str(event.id),
                "created_at": event.created_at.isoformat() if event.created_at else None,
                "user_id": str(event.user_id) if event.user_id else None,
                "event_name": event.event_name,
                "properties": event.properties,
                "request_id": event.request_id,
                "session_id": event.session_id,
            }
            for event in events
        ]
    }
