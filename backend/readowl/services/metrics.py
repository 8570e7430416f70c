"""
Per-book activity aggregates feeding the ranking functions.

One GROUP BY query per signal; books with no activity are still returned
with zero counts so callers can decide what to do with them.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from readowl.models import Book, BookFollow, BookRating, Chapter, ChapterView, Comment
from readowl.services.ranking import BookMetrics
from readowl.utils.timing import time_operation

logger = logging.getLogger(__name__)


def _restrict(stmt, column, book_ids):
    if book_ids is not None:
        stmt = stmt.where(column.in_(book_ids))
    return stmt


def collect_book_metrics(
    db: Session,
    since: Optional[datetime] = None,
    book_ids: Optional[Iterable[UUID]] = None,
) -> Dict[UUID, BookMetrics]:
    """
    Count views, ratings, comments and follows per book.

    Args:
        db: Database session
        since: Only count activity at or after this (naive UTC) instant;
            ratings are windowed on their last update so a re-rating counts
            as fresh activity
        book_ids: Restrict to these books (default: every book)

    Returns:
        Mapping of book id to its BookMetrics
    """
    if book_ids is not None:
        book_ids = list(book_ids)
        if not book_ids:
            return {}

    with time_operation("collect_book_metrics"):
        ids_stmt = _restrict(select(Book.id), Book.id, book_ids)
        metrics = {book_id: BookMetrics(book_id=book_id) for book_id in db.scalars(ids_stmt)}

        views_stmt = (
            select(Chapter.book_id, func.count(ChapterView.id))
            .join(Chapter, Chapter.id == ChapterView.chapter_id)
            .group_by(Chapter.book_id)
        )
        if since is not None:
            views_stmt = views_stmt.where(ChapterView.created_at >= since)
        for book_id, count in db.execute(_restrict(views_stmt, Chapter.book_id, book_ids)):
            if book_id in metrics:
                metrics[book_id].views = count

        ratings_stmt = select(
            BookRating.book_id, func.count(BookRating.id), func.coalesce(func.sum(BookRating.score), 0)
        ).group_by(BookRating.book_id)
        if since is not None:
            ratings_stmt = ratings_stmt.where(BookRating.updated_at >= since)
        for book_id, count, total in db.execute(_restrict(ratings_stmt, BookRating.book_id, book_ids)):
            if book_id in metrics:
                metrics[book_id].rating_count = count
                metrics[book_id].rating_sum = int(total)

        comments_stmt = select(Comment.book_id, func.count(Comment.id)).group_by(Comment.book_id)
        if since is not None:
            comments_stmt = comments_stmt.where(Comment.created_at >= since)
        for book_id, count in db.execute(_restrict(comments_stmt, Comment.book_id, book_ids)):
            if book_id in metrics:
                metrics[book_id].comments = count

        follows_stmt = select(BookFollow.book_id, func.count(BookFollow.id)).group_by(BookFollow.book_id)
        if since is not None:
            follows_stmt = follows_stmt.where(BookFollow.created_at >= since)
        for book_id, count in db.execute(_restrict(follows_stmt, BookFollow.book_id, book_ids)):
            if book_id in metrics:
                metrics[book_id].follows = count

    logger.debug("Collected metrics for %d books (since=%s)", len(metrics), since)
    return metrics
