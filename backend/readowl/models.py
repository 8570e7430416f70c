from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    JSON,
    Table,
    Uuid,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
import uuid
import enum
import sqlalchemy as sa
from readowl.database import Base
from readowl.utils.timing import utcnow


def _enum_column(enum_cls, name: str, **kwargs) -> Column:
    return Column(
        SQLEnum(
            enum_cls,
            name=name,
            values_callable=lambda e: [member.value for member in e],
        ),
        **kwargs,
    )


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class BookStatus(str, enum.Enum):
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"
    HIATUS = "HIATUS"


class NotificationType(str, enum.Enum):
    NEW_CHAPTER = "NEW_CHAPTER"
    BOOK_COMMENT = "BOOK_COMMENT"
    CHAPTER_COMMENT = "CHAPTER_COMMENT"
    COMMENT_REPLY = "COMMENT_REPLY"


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)  # null for accounts created by an external provider
    image = Column(String, nullable=True)
    role = _enum_column(UserRole, "userrole", nullable=False, default=UserRole.USER)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    books = relationship("Book", back_populates="author")
    ratings = relationship("BookRating", back_populates="user")
    follows = relationship("BookFollow", back_populates="user")


book_genres = Table(
    "book_genres",
    Base.metadata,
    Column("book_id", Uuid, ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True),
)


class Genre(Base):
    __tablename__ = "genres"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)

    books = relationship("Book", secondary=book_genres, back_populates="genres")


class Book(Base):
    __tablename__ = "books"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    synopsis = Column(Text, nullable=False)
    release_frequency = Column(String(50), nullable=True)
    cover_url = Column(String, nullable=True)
    status = _enum_column(BookStatus, "bookstatus", nullable=False, default=BookStatus.ONGOING)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    author = relationship("User", back_populates="books")
    genres = relationship("Genre", secondary=book_genres, back_populates="books", order_by="Genre.name")
    volumes = relationship(
        "Volume", back_populates="book", cascade="all, delete-orphan", order_by="Volume.order"
    )
    chapters = relationship(
        "Chapter", back_populates="book", cascade="all, delete-orphan", order_by="Chapter.order"
    )
    ratings = relationship("BookRating", back_populates="book", cascade="all, delete-orphan")
    follows = relationship("BookFollow", back_populates="book", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="book", cascade="all, delete-orphan")


class Volume(Base):
    __tablename__ = "volumes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    book = relationship("Book", back_populates="volumes")
    chapters = relationship("Chapter", back_populates="volume", order_by="Chapter.order")


class Chapter(Base):
    __tablename__ = "chapters"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    volume_id = Column(Uuid, ForeignKey("volumes.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    book = relationship("Book", back_populates="chapters")
    volume = relationship("Volume", back_populates="chapters")
    views = relationship("ChapterView", back_populates="chapter", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="chapter", cascade="all, delete")

    __table_args__ = (
        UniqueConstraint("book_id", "slug", name="uq_chapters_book_slug"),
    )


class ChapterView(Base):
    """A recorded read event; source of every view-count metric."""
    __tablename__ = "chapter_views"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chapter_id = Column(Uuid, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    chapter = relationship("Chapter", back_populates="views")


class BookRating(Base):
    __tablename__ = "book_ratings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False, index=True)

    user = relationship("User", back_populates="ratings")
    book = relationship("Book", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_book_ratings_user_book"),
        CheckConstraint("score >= 1 AND score <= 5", name="ck_book_ratings_score_range"),
    )


class BookFollow(Base):
    __tablename__ = "book_follows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    user = relationship("User", back_populates="follows")
    book = relationship("Book", back_populates="follows")

    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_book_follows_user_book"),
    )


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_id = Column(Uuid, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=True, index=True)
    parent_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User")
    book = relationship("Book", back_populates="comments")
    chapter = relationship("Chapter", back_populates="comments")
    parent = relationship("Comment", remote_side=[id], back_populates="replies")
    replies = relationship("Comment", back_populates="parent", cascade="all, delete-orphan")


class Notification(Base):
    """
    A per-recipient notice. Display fields are copied at creation time so the
    notification still reads correctly after the book or comment is gone.
    """
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = _enum_column(NotificationType, "notificationtype", nullable=False)
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="SET NULL"), nullable=True)
    chapter_id = Column(Uuid, ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True)
    comment_id = Column(Uuid, ForeignKey("comments.id", ondelete="SET NULL"), nullable=True)
    actor_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    book_title = Column(String, nullable=False)
    book_slug = Column(String, nullable=True)
    book_cover_url = Column(String, nullable=True)
    chapter_title = Column(String, nullable=True)
    actor_name = Column(String, nullable=True)
    snippet = Column(Text, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class Banner(Base):
    __tablename__ = "banners"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    image_url = Column(String, nullable=False)
    link_url = Column(String, nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, server_default=sa.func.now(), nullable=False, index=True)
    user_id = Column(Uuid, nullable=True, index=True)
    event_name = Column(String, nullable=False, index=True)
    properties = Column(JSON, nullable=True)
    request_id = Column(String, nullable=True)
    session_id = Column(String, nullable=True)
