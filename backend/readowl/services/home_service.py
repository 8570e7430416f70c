"""
Home page carousels: ranking queries, card hydration and an in-process cache.

The cache is shared between request handlers and the background refresh
job, so every access goes through a lock.
"""
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from readowl.core.config import settings
from readowl.models import Book, BookRating, Chapter
from readowl.schemas.book import BookCard
from readowl.schemas.ranking import HomeCarousels
from readowl.services import ranking
from readowl.services.book_service import to_book_card
from readowl.services.metrics import collect_book_metrics
from readowl.utils.timing import log_elapsed, now_ms, utcnow

logger = logging.getLogger(__name__)

RANKING_KINDS = ("trending", "popular", "top_rated")


class RankingCache:
    """Single-value cache with a time-to-live in seconds."""

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._value: Optional[HomeCarousels] = None
        self._expires_at = 0.0

    def get(self) -> Optional[HomeCarousels]:
        with self._lock:
            if self._value is None or time.monotonic() >= self._expires_at:
                return None
            return self._value

    def set(self, value: HomeCarousels) -> None:
        with self._lock:
            self._value = value
            self._expires_at = time.monotonic() + self.ttl_seconds

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._expires_at = 0.0


ranking_cache = RankingCache(settings.RANKING_CACHE_TTL_SECONDS)


def _hydrate(db: Session, ranked: Sequence[ranking.RankedBook]) -> List[BookCard]:
    """
    Turn ranked ids into cards, keeping the ranking order.

    Scores come from the ranking window; rating fields are all-time.
    """
    if not ranked:
        return []
    ids = [r.book_id for r in ranked]
    books: Dict[UUID, Book] = {
        book.id: book
        for book in db.query(Book)
        .options(selectinload(Book.genres), selectinload(Book.author))
        .filter(Book.id.in_(ids))
        .all()
    }
    ratings = {
        book_id: (count, float(average or 0.0))
        for book_id, count, average in db.execute(
            select(BookRating.book_id, func.count(BookRating.id), func.avg(BookRating.score))
            .where(BookRating.book_id.in_(ids))
            .group_by(BookRating.book_id)
        ).all()
    }
    cards = []
    for r in ranked:
        book = books.get(r.book_id)
        if book is None:
            continue
        rating_count, rating_average = ratings.get(r.book_id, (0, 0.0))
        cards.append(to_book_card(
            book,
            score=r.score,
            rating_average=round(rating_average, 2),
            rating_count=rating_count,
        ))
    return cards


def _window_start(now: datetime, days: Optional[int]) -> Optional[datetime]:
    if days is None:
        return None
    return now - timedelta(days=days)


def rank_books(
    db: Session,
    kind: str,
    window_days: Optional[int] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[Optional[int], List[BookCard]]:
    """
    Compute one ranking live.

    Trending and popular default to their configured windows; top rated is
    all-time unless a window is given. Returns the window used and the cards.
    """
    if kind not in RANKING_KINDS:
        raise ValueError(f"Unknown ranking kind: {kind}")
    now = now or utcnow()
    limit = settings.RANKING_LIMIT if limit is None else limit

    if kind == "trending":
        window_days = settings.TRENDING_WINDOW_DAYS if window_days is None else window_days
        metrics = collect_book_metrics(db, since=_window_start(now, window_days))
        ranked = ranking.trending_scores(
            metrics.values(),
            weights=ranking.ENGAGEMENT_WEIGHTS,
            normalization=ranking.Normalization.PERCENTILE,
            p=settings.RANKING_PERCENTILE,
            limit=limit,
        )
    elif kind == "popular":
        window_days = settings.POPULAR_WINDOW_DAYS if window_days is None else window_days
        metrics = collect_book_metrics(db, since=_window_start(now, window_days))
        ranked = ranking.trending_scores(
            metrics.values(),
            weights=ranking.POPULARITY_WEIGHTS,
            normalization=ranking.Normalization.MAX,
            limit=limit,
        )
    else:
        metrics = collect_book_metrics(db, since=_window_start(now, window_days))
        ranked = ranking.top_rated(metrics.values(), m=settings.RANKING_PRIOR_WEIGHT, limit=limit)

    return window_days, _hydrate(db, ranked)


def recent_books(db: Session, limit: Optional[int] = None) -> List[BookCard]:
    """Books with the newest chapters first; books without chapters follow by creation time."""
    limit = settings.RANKING_LIMIT if limit is None else limit
    latest = (
        select(Chapter.book_id, func.max(Chapter.created_at).label("latest_chapter_at"))
        .group_by(Chapter.book_id)
        .subquery()
    )
    books = (
        db.query(Book)
        .options(selectinload(Book.genres), selectinload(Book.author))
        .outerjoin(latest, latest.c.book_id == Book.id)
        .order_by(latest.c.latest_chapter_at.desc().nulls_last(), Book.created_at.desc(), Book.id)
        .limit(limit)
        .all()
    )
    return [to_book_card(book) for book in books]


def compute_carousels(db: Session, now: Optional[datetime] = None) -> HomeCarousels:
    now = now or utcnow()
    start = now_ms()
    _, trending = rank_books(db, "trending", now=now)
    _, popular = rank_books(db, "popular", now=now)
    _, top = rank_books(db, "top_rated", now=now)
    carousels = HomeCarousels(
        trending=trending,
        popular=popular,
        top_rated=top,
        recent=recent_books(db),
    )
    log_elapsed(start, "compute_carousels", logger.info)
    return carousels


def get_home_carousels(db: Session) -> HomeCarousels:
    cached = ranking_cache.get()
    if cached is not None:
        return cached
    carousels = compute_carousels(db)
    ranking_cache.set(carousels)
    return carousels


def refresh_carousels(db: Session) -> HomeCarousels:
    """Recompute and store, regardless of the cache state."""
    carousels = compute_carousels(db)
    ranking_cache.set(carousels)
    return carousels


def invalidate() -> None:
    ranking_cache.invalidate()
