"""
Notification fan-out and the recipient-side inbox operations.
"""
import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from readowl.models import Book, BookFollow, Chapter, Comment, Notification, NotificationType, User
from readowl.services.errors import NotFoundError

logger = logging.getLogger(__name__)

SNIPPET_MAX = 140


def make_snippet(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    text = " ".join(text.split())
    if len(text) <= SNIPPET_MAX:
        return text
    return text[: SNIPPET_MAX - 1].rstrip() + "…"


def build_notification(
    recipient_id: UUID,
    type: NotificationType,
    book: Book,
    actor: Optional[User] = None,
    chapter: Optional[Chapter] = None,
    comment: Optional[Comment] = None,
) -> Notification:
    return Notification(
        user_id=recipient_id,
        type=type,
        book_id=book.id,
        chapter_id=chapter.id if chapter else None,
        comment_id=comment.id if comment else None,
        actor_id=actor.id if actor else None,
        book_title=book.title,
        book_slug=book.slug,
        book_cover_url=book.cover_url,
        chapter_title=chapter.title if chapter else None,
        actor_name=actor.name if actor else None,
        snippet=make_snippet(comment.content) if comment else None,
    )


def deliver(db: Session, notifications: Iterable[Notification]) -> int:
    """
    Persist notifications in their own commit.

    Runs after the triggering change is committed; a failure here is logged
    and the triggering request still succeeds.
    """
    items = list(notifications)
    if not items:
        return 0
    try:
        db.add_all(items)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to deliver %d notifications: %s", len(items), str(e), exc_info=True)
        return 0
    return len(items)


def notify_new_chapter(db: Session, book: Book, chapter: Chapter, actor: User) -> int:
    follower_ids = [
        row.user_id
        for row in db.query(BookFollow.user_id).filter(BookFollow.book_id == book.id).all()
        if row.user_id != actor.id
    ]
    return deliver(db, (
        build_notification(user_id, NotificationType.NEW_CHAPTER, book, actor=actor, chapter=chapter)
        for user_id in follower_ids
    ))


def notify_comment(db: Session, comment: Comment, actor: User) -> int:
    """Tell the book author about a comment and the parent's author about a reply, never the actor."""
    book = comment.book
    chapter = comment.chapter
    pending: List[Notification] = []
    recipients = set()

    if book.author_id != actor.id:
        kind = NotificationType.CHAPTER_COMMENT if chapter else NotificationType.BOOK_COMMENT
        pending.append(build_notification(book.author_id, kind, book, actor, chapter, comment))
        recipients.add(book.author_id)

    parent = comment.parent
    if parent is not None and parent.user_id != actor.id and parent.user_id not in recipients:
        pending.append(build_notification(
            parent.user_id, NotificationType.COMMENT_REPLY, book, actor, chapter, comment
        ))

    return deliver(db, pending)


def list_notifications(db: Session, user: User, limit: int = 50) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc(), Notification.id)
        .limit(limit)
        .all()
    )


def _get_own(db: Session, user: User, notification_id: UUID) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user.id)
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(db: Session, user: User, notification_id: UUID) -> Notification:
    notification = _get_own(db, user, notification_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def delete_notification(db: Session, user: User, notification_id: UUID) -> None:
    db.delete(_get_own(db, user, notification_id))
    db.commit()


def clear_notifications(db: Session, user: User) -> int:
    deleted = (
        db.query(Notification)
        .filter(Notification.user_id == user.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
