"""
Book catalogue operations: lookup by slug, create, edit, delete, and the
serializers the routers share.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from readowl.core.auth import is_owner_or_admin
from readowl.core.security import verify_password
from readowl.models import Book, BookFollow, BookRating, Chapter, ChapterView, Genre, User
from readowl.schemas.book import BookCard, BookCreate, BookResponse, BookStats, BookUpdate
from readowl.schemas.common import AuthorSummary
from readowl.services.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from readowl.utils.instrumentation import log_event
from readowl.utils.slug import slugify, unique_slug

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "title": Book.title,
    "created_at": Book.created_at,
    "updated_at": Book.updated_at,
}


def get_book_by_slug(db: Session, slug: str) -> Book:
    book = db.query(Book).filter(Book.slug == slug).first()
    if book is None:
        raise NotFoundError("Book not found")
    return book


def require_book_owner(book: Book, user: Optional[User]) -> None:
    if not is_owner_or_admin(user, book.author_id):
        raise PermissionDeniedError("Forbidden")


def _book_slug_taken(db: Session, exclude_id: Optional[UUID] = None):
    def taken(candidate: str) -> bool:
        query = db.query(Book.id).filter(Book.slug == candidate)
        if exclude_id is not None:
            query = query.filter(Book.id != exclude_id)
        return query.first() is not None
    return taken


def make_book_slug(db: Session, title: str, exclude_id: Optional[UUID] = None) -> str:
    base = slugify(title) or "obra"
    return unique_slug(base, _book_slug_taken(db, exclude_id))


def _resolve_genres(db: Session, names: list[str]) -> list[Genre]:
    """Connect-or-create genres by name."""
    existing = {g.name: g for g in db.query(Genre).filter(Genre.name.in_(names)).all()}
    genres = []
    for name in names:
        genre = existing.get(name)
        if genre is None:
            genre = Genre(name=name)
            db.add(genre)
            existing[name] = genre
        genres.append(genre)
    return genres


def create_book(db: Session, author: User, payload: BookCreate) -> Book:
    book = Book(
        title=payload.title,
        slug=make_book_slug(db, payload.title),
        synopsis=payload.synopsis,
        release_frequency=payload.release_frequency,
        cover_url=payload.cover_url,
        status=payload.status,
        author_id=author.id,
    )
    book.genres = _resolve_genres(db, payload.genres)
    db.add(book)
    db.flush()
    log_event(db, "book_created", user_id=author.id, properties={"book_id": str(book.id), "slug": book.slug})
    db.commit()
    db.refresh(book)
    logger.info("Book created: id=%s slug=%s author_id=%s", book.id, book.slug, author.id)
    return book


def update_book(db: Session, book: Book, user: User, payload: BookUpdate) -> Book:
    require_book_owner(book, user)
    changes = payload.model_dump(exclude_unset=True)

    # Required columns can't be cleared through a partial update
    for key in ("title", "synopsis", "status", "genres"):
        if key in changes and changes[key] is None:
            changes.pop(key)

    if "title" in changes and changes["title"] != book.title:
        book.title = changes["title"]
        book.slug = make_book_slug(db, book.title, exclude_id=book.id)
    if "synopsis" in changes:
        book.synopsis = changes["synopsis"]
    if "release_frequency" in changes:
        book.release_frequency = changes["release_frequency"]
    if "cover_url" in changes:
        book.cover_url = changes["cover_url"]
    if "status" in changes:
        book.status = changes["status"]
    if "genres" in changes:
        book.genres = _resolve_genres(db, changes["genres"])

    db.commit()
    db.refresh(book)
    return book


def delete_book(db: Session, book: Book, user: User, title_confirm: str, password: Optional[str]) -> None:
    """
    Delete a book and everything under it.

    The caller must retype the exact title, and accounts with a local
    password must confirm it.
    """
    require_book_owner(book, user)
    if title_confirm != book.title:
        raise ValidationFailedError("Title confirmation does not match")
    if user.password_hash:
        if not password:
            raise ValidationFailedError("Password required")
        if not verify_password(password, user.password_hash):
            raise PermissionDeniedError("Incorrect password")

    book_id, title = book.id, book.title
    db.delete(book)
    log_event(db, "book_deleted", user_id=user.id, properties={"book_id": str(book_id), "title": title})
    db.commit()
    logger.info("Book deleted: id=%s by user_id=%s", book_id, user.id)


def list_books(
    db: Session,
    q: Optional[str] = None,
    genre: Optional[str] = None,
    status=None,
    sort: str = "created_at",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> list[Book]:
    query = db.query(Book).options(selectinload(Book.genres), selectinload(Book.author))
    if q:
        query = query.filter(Book.title.ilike(f"%{q.strip()}%"))
    if genre:
        query = query.filter(Book.genres.any(Genre.name == genre))
    if status is not None:
        query = query.filter(Book.status == status)

    # Sort with allowlist to prevent SQL injection
    sort_col = SORT_FIELDS.get(sort, Book.created_at)
    query = query.order_by(sort_col.desc() if order.lower() == "desc" else sort_col.asc(), Book.id)
    return query.offset(offset).limit(limit).all()


def count_book_views(db: Session, book_id: UUID) -> int:
    return db.scalar(
        select(func.count(ChapterView.id))
        .join(Chapter, Chapter.id == ChapterView.chapter_id)
        .where(Chapter.book_id == book_id)
    ) or 0


def book_stats(db: Session, book: Book) -> BookStats:
    rating_count, rating_avg = db.execute(
        select(func.count(BookRating.id), func.avg(BookRating.score)).where(BookRating.book_id == book.id)
    ).one()
    return BookStats(
        views=count_book_views(db, book.id),
        chapters=db.scalar(select(func.count(Chapter.id)).where(Chapter.book_id == book.id)) or 0,
        followers=db.scalar(select(func.count(BookFollow.id)).where(BookFollow.book_id == book.id)) or 0,
        rating_average=round(float(rating_avg or 0.0), 2),
        rating_count=rating_count or 0,
    )


def author_summary(user: User) -> AuthorSummary:
    return AuthorSummary(id=str(user.id), name=user.name, image=user.image)


def to_book_response(db: Session, book: Book) -> BookResponse:
    return BookResponse(
        id=str(book.id),
        slug=book.slug,
        title=book.title,
        synopsis=book.synopsis,
        release_frequency=book.release_frequency,
        cover_url=book.cover_url,
        status=book.status,
        author=author_summary(book.author),
        genres=[g.name for g in book.genres],
        stats=book_stats(db, book),
        created_at=book.created_at,
        updated_at=book.updated_at,
    )


def to_book_card(book: Book, **extra) -> BookCard:
    return BookCard(
        id=str(book.id),
        slug=book.slug,
        title=book.title,
        cover_url=book.cover_url,
        status=book.status,
        author_name=book.author.name if book.author else "",
        genres=[g.name for g in book.genres],
        **extra,
    )


def get_library(db: Session, user: User) -> tuple[list[Book], list[Book]]:
    authored = (
        db.query(Book)
        .filter(Book.author_id == user.id)
        .order_by(Book.updated_at.desc())
        .all()
    )
    following = (
        db.query(Book)
        .join(BookFollow, BookFollow.book_id == Book.id)
        .filter(BookFollow.user_id == user.id)
        .order_by(BookFollow.created_at.desc())
        .all()
    )
    return authored, following
