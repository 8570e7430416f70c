"""
Volumes, chapters and chapter views.
"""
import logging
from datetime import timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from readowl.core.config import settings
from readowl.models import Book, Chapter, ChapterView, User, Volume
from readowl.schemas.chapter import (
    ChapterCreate,
    ChapterListResponse,
    ChapterResponse,
    ChapterSummary,
    ChapterUpdate,
    VolumeResponse,
    VolumeWithChapters,
)
from readowl.services.book_service import require_book_owner
from readowl.services.errors import NotFoundError, ValidationFailedError
from readowl.utils.instrumentation import log_event
from readowl.utils.slug import slugify, unique_slug
from readowl.utils.timing import utcnow

logger = logging.getLogger(__name__)


# ----------------------------
# Volumes
# ----------------------------
def list_volumes(db: Session, book: Book) -> List[Volume]:
    return db.query(Volume).filter(Volume.book_id == book.id).order_by(Volume.order, Volume.created_at).all()


def get_volume(db: Session, book: Book, volume_id: UUID) -> Volume:
    volume = db.query(Volume).filter(Volume.id == volume_id, Volume.book_id == book.id).first()
    if volume is None:
        raise NotFoundError("Volume not found")
    return volume


def create_volume(db: Session, book: Book, user: User, title: str) -> Volume:
    require_book_owner(book, user)
    max_order = db.scalar(select(func.max(Volume.order)).where(Volume.book_id == book.id)) or 0
    volume = Volume(book_id=book.id, title=title, order=max_order + 1)
    db.add(volume)
    db.commit()
    db.refresh(volume)
    return volume


def update_volume(db: Session, book: Book, user: User, volume_id: UUID, title: str) -> Volume:
    require_book_owner(book, user)
    volume = get_volume(db, book, volume_id)
    volume.title = title
    db.commit()
    db.refresh(volume)
    return volume


def delete_volume(db: Session, book: Book, user: User, volume_id: UUID) -> None:
    """Delete a volume; its chapters move to the end of the unassigned list."""
    require_book_owner(book, user)
    volume = get_volume(db, book, volume_id)

    next_order = _next_chapter_order(db, book.id, None)
    for chapter in sorted(volume.chapters, key=lambda c: c.order):
        chapter.volume_id = None
        chapter.order = next_order
        next_order += 1

    db.delete(volume)
    db.commit()


# ----------------------------
# Chapters
# ----------------------------
def _next_chapter_order(db: Session, book_id: UUID, volume_id: Optional[UUID]) -> int:
    """Max order + 1 inside the volume, or across the whole book for chapters outside any volume."""
    stmt = select(func.max(Chapter.order)).where(Chapter.book_id == book_id)
    if volume_id is not None:
        stmt = stmt.where(Chapter.volume_id == volume_id)
    return (db.scalar(stmt) or 0) + 1


def _resolve_volume_id(db: Session, book: Book, raw: Optional[str]) -> Optional[UUID]:
    """Parse a volume id from the request and check it belongs to the book."""
    if raw is None or not str(raw).strip():
        return None
    try:
        volume_id = UUID(str(raw))
    except ValueError:
        raise ValidationFailedError("Invalid volume")
    exists = db.query(Volume.id).filter(Volume.id == volume_id, Volume.book_id == book.id).first()
    if exists is None:
        raise ValidationFailedError("Invalid volume")
    return volume_id


def _chapter_slug(db: Session, book_id: UUID, title: str, exclude_id: Optional[UUID] = None) -> str:
    def taken(candidate: str) -> bool:
        query = db.query(Chapter.id).filter(Chapter.book_id == book_id, Chapter.slug == candidate)
        if exclude_id is not None:
            query = query.filter(Chapter.id != exclude_id)
        return query.first() is not None

    return unique_slug(slugify(title) or "capitulo", taken)


def get_chapter(db: Session, book: Book, chapter_slug: str) -> Chapter:
    chapter = db.query(Chapter).filter(Chapter.book_id == book.id, Chapter.slug == chapter_slug).first()
    if chapter is None:
        raise NotFoundError("Chapter not found")
    return chapter


def create_chapter(db: Session, book: Book, user: User, payload: ChapterCreate) -> Chapter:
    require_book_owner(book, user)
    volume_id = _resolve_volume_id(db, book, payload.volume_id)

    chapter = Chapter(
        book_id=book.id,
        volume_id=volume_id,
        title=payload.title,
        slug=_chapter_slug(db, book.id, payload.title),
        content=payload.content,
        order=_next_chapter_order(db, book.id, volume_id),
    )
    db.add(chapter)
    db.flush()
    log_event(
        db,
        "chapter_published",
        user_id=user.id,
        properties={"book_id": str(book.id), "chapter_id": str(chapter.id), "slug": chapter.slug},
    )
    db.commit()
    db.refresh(chapter)
    logger.info("Chapter published: book=%s chapter=%s order=%s", book.slug, chapter.slug, chapter.order)
    return chapter


def update_chapter(db: Session, book: Book, user: User, chapter: Chapter, payload: ChapterUpdate) -> Chapter:
    require_book_owner(book, user)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("title") and changes["title"] != chapter.title:
        chapter.title = changes["title"]
        chapter.slug = _chapter_slug(db, book.id, chapter.title, exclude_id=chapter.id)
    if changes.get("content"):
        chapter.content = changes["content"]
    if "volume_id" in changes:
        volume_id = _resolve_volume_id(db, book, changes["volume_id"])
        if volume_id != chapter.volume_id:
            chapter.order = _next_chapter_order(db, book.id, volume_id)
            chapter.volume_id = volume_id

    db.commit()
    db.refresh(chapter)
    return chapter


def delete_chapter(db: Session, book: Book, user: User, chapter: Chapter) -> None:
    require_book_owner(book, user)
    db.delete(chapter)
    db.commit()


def reading_order(db: Session, book: Book) -> Tuple[List[Tuple[Volume, List[Chapter]]], List[Chapter]]:
    """Volumes in order with their chapters, then the chapters outside any volume."""
    chapters = (
        db.query(Chapter)
        .filter(Chapter.book_id == book.id)
        .order_by(Chapter.order, Chapter.created_at)
        .all()
    )
    by_volume = {}
    unassigned = []
    for chapter in chapters:
        if chapter.volume_id is None:
            unassigned.append(chapter)
        else:
            by_volume.setdefault(chapter.volume_id, []).append(chapter)
    grouped = [(volume, by_volume.get(volume.id, [])) for volume in list_volumes(db, book)]
    return grouped, unassigned


def to_volume_response(volume: Volume) -> VolumeResponse:
    return VolumeResponse(id=str(volume.id), title=volume.title, order=volume.order)


def to_chapter_summary(chapter: Chapter) -> ChapterSummary:
    return ChapterSummary(
        id=str(chapter.id),
        slug=chapter.slug,
        title=chapter.title,
        order=chapter.order,
        volume_id=str(chapter.volume_id) if chapter.volume_id else None,
        created_at=chapter.created_at,
    )


def chapter_list(db: Session, book: Book) -> ChapterListResponse:
    grouped, unassigned = reading_order(db, book)
    return ChapterListResponse(
        volumes=[
            VolumeWithChapters(
                volume=to_volume_response(volume),
                chapters=[to_chapter_summary(c) for c in chapters],
            )
            for volume, chapters in grouped
        ],
        unassigned=[to_chapter_summary(c) for c in unassigned],
    )


def to_chapter_response(db: Session, book: Book, chapter: Chapter) -> ChapterResponse:
    grouped, unassigned = reading_order(db, book)
    flat = [c for _, chapters in grouped for c in chapters] + unassigned
    ids = [c.id for c in flat]
    index = ids.index(chapter.id)
    previous_slug = flat[index - 1].slug if index > 0 else None
    next_slug = flat[index + 1].slug if index + 1 < len(flat) else None

    summary = to_chapter_summary(chapter)
    return ChapterResponse(
        **summary.model_dump(),
        content=chapter.content,
        book_slug=book.slug,
        book_title=book.title,
        previous_slug=previous_slug,
        next_slug=next_slug,
    )


# ----------------------------
# Views
# ----------------------------
def record_chapter_view(db: Session, chapter: Chapter, user: Optional[User] = None) -> bool:
    """
    Record a read of ``chapter``.

    Anonymous reads always count. A signed-in reader counts once per
    VIEW_DEDUP_MINUTES per chapter. Returns whether a view was stored.
    """
    now = utcnow()
    if user is not None:
        cutoff = now - timedelta(minutes=settings.VIEW_DEDUP_MINUTES)
        recent = (
            db.query(ChapterView.id)
            .filter(
                ChapterView.chapter_id == chapter.id,
                ChapterView.user_id == user.id,
                ChapterView.created_at >= cutoff,
            )
            .first()
        )
        if recent is not None:
            return False

    db.add(ChapterView(chapter_id=chapter.id, user_id=user.id if user else None, created_at=now))
    db.commit()
    return True


def count_chapter_views(db: Session, chapter: Chapter) -> int:
    return db.scalar(select(func.count(ChapterView.id)).where(ChapterView.chapter_id == chapter.id)) or 0
