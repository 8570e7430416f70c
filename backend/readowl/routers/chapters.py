"""
Volume and chapter endpoints, nested under a book, plus chapter view counters.
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from readowl.core.auth import get_current_user, get_optional_user, is_owner_or_admin
from readowl.database import get_db
from readowl.models import Book, User
from readowl.routers.deps import get_book, parse_uuid, service_errors
from readowl.schemas.chapter import (
    ChapterCreate,
    ChapterListResponse,
    ChapterResponse,
    ChapterUpdate,
    VolumeCreate,
    VolumeResponse,
    ViewCount,
    ViewRecorded,
)
from readowl.services import book_service, chapter_service, notification_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/books/{slug}", tags=["chapters"])


# ----------------------------
# Volumes
# ----------------------------
@router.get("/volumes", response_model=List[VolumeResponse])
def list_volumes(book: Book = Depends(get_book), db: Session = Depends(get_db)):
    return [chapter_service.to_volume_response(v) for v in chapter_service.list_volumes(db, book)]


@router.post("/volumes", response_model=VolumeResponse, status_code=status.HTTP_201_CREATED)
def create_volume(
    payload: VolumeCreate,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        volume = chapter_service.create_volume(db, book, user, payload.title)
    return chapter_service.to_volume_response(volume)


@router.put("/volumes/{volume_id}", response_model=VolumeResponse)
def update_volume(
    volume_id: str,
    payload: VolumeCreate,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        volume = chapter_service.update_volume(db, book, user, parse_uuid(volume_id, "Volume"), payload.title)
    return chapter_service.to_volume_response(volume)


@router.delete("/volumes/{volume_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_volume(
    volume_id: str,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        chapter_service.delete_volume(db, book, user, parse_uuid(volume_id, "Volume"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------
# Chapters
# ----------------------------
@router.get("/chapters", response_model=ChapterListResponse)
def list_chapters(book: Book = Depends(get_book), db: Session = Depends(get_db)):
    return chapter_service.chapter_list(db, book)


@router.post("/chapters", response_model=ChapterResponse, status_code=status.HTTP_201_CREATED)
def create_chapter(
    payload: ChapterCreate,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Publish a chapter and notify the book's followers."""
    with service_errors():
        chapter = chapter_service.create_chapter(db, book, user, payload)
    notification_service.notify_new_chapter(db, book, chapter, user)
    return chapter_service.to_chapter_response(db, book, chapter)


@router.get("/chapters/{chapter_slug}", response_model=ChapterResponse)
def read_chapter(
    chapter_slug: str,
    book: Book = Depends(get_book),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        chapter = chapter_service.get_chapter(db, book, chapter_slug)
    chapter_service.record_chapter_view(db, chapter, user)
    return chapter_service.to_chapter_response(db, book, chapter)


@router.put("/chapters/{chapter_slug}", response_model=ChapterResponse)
def update_chapter(
    chapter_slug: str,
    payload: ChapterUpdate,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        chapter = chapter_service.get_chapter(db, book, chapter_slug)
        chapter = chapter_service.update_chapter(db, book, user, chapter, payload)
    return chapter_service.to_chapter_response(db, book, chapter)


@router.delete("/chapters/{chapter_slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chapter(
    chapter_slug: str,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        chapter = chapter_service.get_chapter(db, book, chapter_slug)
        chapter_service.delete_chapter(db, book, user, chapter)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------
# Views
# ----------------------------
@router.get("/views", response_model=ViewCount)
def book_views(book: Book = Depends(get_book), db: Session = Depends(get_db)):
    return ViewCount(count=book_service.count_book_views(db, book.id))


@router.get("/chapters/{chapter_slug}/views", response_model=ViewCount)
def chapter_views(
    chapter_slug: str,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-chapter counts are only visible to the book owner and admins."""
    if not is_owner_or_admin(user, book.author_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    with service_errors():
        chapter = chapter_service.get_chapter(db, book, chapter_slug)
    return ViewCount(count=chapter_service.count_chapter_views(db, chapter))


@router.post("/chapters/{chapter_slug}/views", response_model=ViewRecorded)
def record_view(
    chapter_slug: str,
    book: Book = Depends(get_book),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        chapter = chapter_service.get_chapter(db, book, chapter_slug)
    recorded = chapter_service.record_chapter_view(db, chapter, user)
    return ViewRecorded(recorded=recorded, count=chapter_service.count_chapter_views(db, chapter))
