"""
Reader interactions with a book: ratings, follows and comments.
"""
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from readowl.core.auth import is_owner_or_admin
from readowl.models import Book, BookFollow, BookRating, Chapter, Comment, User
from readowl.schemas.social import CommentCreate, CommentResponse, FollowStatus, RatingSummary
from readowl.services.book_service import author_summary
from readowl.services.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from readowl.services.notification_service import notify_comment
from readowl.utils.timing import utcnow

logger = logging.getLogger(__name__)


# ----------------------------
# Ratings
# ----------------------------
def rating_summary(db: Session, book: Book, user: Optional[User] = None) -> RatingSummary:
    count, average = db.execute(
        select(func.count(BookRating.id), func.avg(BookRating.score)).where(BookRating.book_id == book.id)
    ).one()
    average = round(float(average or 0.0), 2)
    my_score = None
    if user is not None:
        my_score = db.scalar(
            select(BookRating.score).where(BookRating.book_id == book.id, BookRating.user_id == user.id)
        )
    return RatingSummary(
        average=average,
        count=count or 0,
        percent=round(average * 20, 2),
        my_score=my_score,
    )


def rate_book(db: Session, book: Book, user: User, score: int) -> BookRating:
    """Create or replace the user's rating for the book."""
    if not 1 <= score <= 5:
        raise ValidationFailedError("Score must be between 1 and 5")
    rating = (
        db.query(BookRating)
        .filter(BookRating.book_id == book.id, BookRating.user_id == user.id)
        .first()
    )
    if rating:
        rating.score = score
        rating.updated_at = utcnow()
    else:
        rating = BookRating(book_id=book.id, user_id=user.id, score=score)
        db.add(rating)
    db.commit()
    db.refresh(rating)
    return rating


def remove_rating(db: Session, book: Book, user: User) -> bool:
    deleted = (
        db.query(BookRating)
        .filter(BookRating.book_id == book.id, BookRating.user_id == user.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0


# ----------------------------
# Follows
# ----------------------------
def follow_status(db: Session, book: Book, user: Optional[User] = None) -> FollowStatus:
    count = db.scalar(select(func.count(BookFollow.id)).where(BookFollow.book_id == book.id)) or 0
    following = False
    if user is not None:
        following = db.query(BookFollow.id).filter(
            BookFollow.book_id == book.id, BookFollow.user_id == user.id
        ).first() is not None
    return FollowStatus(following=following, count=count)


def follow_book(db: Session, book: Book, user: User) -> FollowStatus:
    exists = db.query(BookFollow.id).filter(
        BookFollow.book_id == book.id, BookFollow.user_id == user.id
    ).first()
    if exists is None:
        db.add(BookFollow(book_id=book.id, user_id=user.id))
        try:
            db.commit()
        except IntegrityError:
            # Concurrent follow already inserted the row
            db.rollback()
    return follow_status(db, book, user)


def unfollow_book(db: Session, book: Book, user: User) -> FollowStatus:
    db.query(BookFollow).filter(
        BookFollow.book_id == book.id, BookFollow.user_id == user.id
    ).delete(synchronize_session=False)
    db.commit()
    return follow_status(db, book, user)


# ----------------------------
# Comments
# ----------------------------
def _parse_uuid(raw: str, message: str) -> UUID:
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationFailedError(message)


def create_comment(db: Session, book: Book, user: User, payload: CommentCreate) -> Comment:
    chapter = None
    if payload.chapter_slug:
        chapter = (
            db.query(Chapter)
            .filter(Chapter.book_id == book.id, Chapter.slug == payload.chapter_slug)
            .first()
        )
        if chapter is None:
            raise NotFoundError("Chapter not found")

    parent = None
    if payload.parent_id:
        parent = db.get(Comment, _parse_uuid(payload.parent_id, "Invalid parent comment"))
        if parent is None or parent.book_id != book.id:
            raise ValidationFailedError("Parent comment does not belong to this book")
        # Replies live in their parent's thread
        if chapter is not None and chapter.id != parent.chapter_id:
            raise ValidationFailedError("Reply must be in the same thread as its parent")
        chapter = parent.chapter

    comment = Comment(
        user_id=user.id,
        book_id=book.id,
        chapter_id=chapter.id if chapter else None,
        parent_id=parent.id if parent else None,
        content=payload.content,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)

    notify_comment(db, comment, user)
    return comment


def list_comments(db: Session, book: Book, chapter_slug: Optional[str] = None) -> List[Comment]:
    """Top-level comments, newest first; replies hang off each one."""
    query = (
        db.query(Comment)
        .options(selectinload(Comment.user), selectinload(Comment.chapter))
        .filter(Comment.book_id == book.id)
    )
    if chapter_slug:
        query = query.join(Chapter, Chapter.id == Comment.chapter_id).filter(Chapter.slug == chapter_slug)
    else:
        query = query.filter(Comment.chapter_id.is_(None))
    return query.order_by(Comment.created_at.desc(), Comment.id).all()


def comment_tree(comments: List[Comment]) -> List[CommentResponse]:
    """Nest a flat list of comments under their parents, oldest replies first."""
    nodes: Dict[UUID, CommentResponse] = {}
    for comment in comments:
        nodes[comment.id] = CommentResponse(
            id=str(comment.id),
            content=comment.content,
            author=author_summary(comment.user),
            chapter_slug=comment.chapter.slug if comment.chapter else None,
            parent_id=str(comment.parent_id) if comment.parent_id else None,
            created_at=comment.created_at,
        )

    roots = []
    for comment in comments:
        node = nodes[comment.id]
        if comment.parent_id is not None and comment.parent_id in nodes:
            nodes[comment.parent_id].replies.insert(0, node)
        else:
            roots.append(node)
    return roots


def delete_comment(db: Session, user: User, comment_id: UUID) -> None:
    comment = db.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError("Comment not found")
    if comment.user_id != user.id and not is_owner_or_admin(user, comment.book.author_id):
        raise PermissionDeniedError("Forbidden")
    db.delete(comment)
    db.commit()
