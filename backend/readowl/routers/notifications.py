from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List

from readowl.core.auth import get_current_user
from readowl.database import get_db
from readowl.models import User
from readowl.routers.deps import parse_uuid, service_errors
from readowl.schemas.notification import NotificationResponse
from readowl.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_response(notification) -> NotificationResponse:
    return NotificationResponse(
        id=str(notification.id),
        type=notification.type,
        book_title=notification.book_title,
        book_slug=notification.book_slug,
        book_cover_url=notification.book_cover_url,
        chapter_title=notification.chapter_title,
        actor_name=notification.actor_name,
        snippet=notification.snippet,
        read=notification.read,
        created_at=notification.created_at,
    )


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [_to_response(n) for n in notification_service.list_notifications(db, user, limit=limit)]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        notification = notification_service.mark_read(db, user, parse_uuid(notification_id, "Notification"))
    return _to_response(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        notification_service.delete_notification(db, user, parse_uuid(notification_id, "Notification"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_notifications(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    notification_service.clear_notifications(db, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
