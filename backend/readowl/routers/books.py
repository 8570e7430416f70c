from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from readowl.core.auth import get_current_user
from readowl.database import get_db
from readowl.models import Book, BookStatus, User
from readowl.routers.deps import get_book, service_errors
from readowl.schemas.book import (
    BOOK_GENRES_MASTER,
    BookCard,
    BookCreate,
    BookDeleteRequest,
    BookResponse,
    BookUpdate,
    LibraryResponse,
)
from readowl.services import book_service, home_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["books"])


@router.get("/genres", response_model=List[str])
def list_genres():
    return sorted(BOOK_GENRES_MASTER)


@router.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
def create_book(
    payload: BookCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    book = book_service.create_book(db, user, payload)
    return book_service.to_book_response(db, book)


@router.get("/books", response_model=List[BookCard])
def list_books(
    q: Optional[str] = None,
    genre: Optional[str] = None,
    status: Optional[BookStatus] = None,
    sort: str = Query("created_at", pattern="^(title|created_at|updated_at)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """
    Browse the catalogue.

    - q: case-insensitive title search
    - genre: exact genre name
    - status: ONGOING | COMPLETED | PAUSED | HIATUS
    """
    books = book_service.list_books(
        db, q=q, genre=genre, status=status, sort=sort, order=order, limit=limit, offset=offset
    )
    return [book_service.to_book_card(book) for book in books]


@router.get("/books/{slug}", response_model=BookResponse)
def get_book_detail(book: Book = Depends(get_book), db: Session = Depends(get_db)):
    return book_service.to_book_response(db, book)


@router.put("/books/{slug}", response_model=BookResponse)
def update_book(
    payload: BookUpdate,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        book = book_service.update_book(db, book, user, payload)
    return book_service.to_book_response(db, book)


@router.delete("/books/{slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(
    payload: BookDeleteRequest,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        book_service.delete_book(db, book, user, payload.title_confirm, payload.password)
    home_service.invalidate()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/library", response_model=LibraryResponse)
def my_library(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Books I wrote and books I follow."""
    authored, following = book_service.get_library(db, user)
    return LibraryResponse(
        authored=[book_service.to_book_card(b) for b in authored],
        following=[book_service.to_book_card(b) for b in following],
    )
