from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from readowl.core.auth import get_current_user, get_optional_user
from readowl.database import get_db
from readowl.models import Book, User
from readowl.routers.deps import get_book, parse_uuid, service_errors
from readowl.schemas.social import (
    CommentCreate,
    CommentResponse,
    FollowStatus,
    RatingRequest,
    RatingSummary,
)
from readowl.services import social_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["social"])


# ----------------------------
# Ratings
# ----------------------------
@router.get("/books/{slug}/rating", response_model=RatingSummary)
def get_rating(
    book: Book = Depends(get_book),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return social_service.rating_summary(db, book, user)


@router.put("/books/{slug}/rating", response_model=RatingSummary)
def rate_book(
    payload: RatingRequest,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        social_service.rate_book(db, book, user, payload.score)
    return social_service.rating_summary(db, book, user)


@router.delete("/books/{slug}/rating", response_model=RatingSummary)
def remove_rating(
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    social_service.remove_rating(db, book, user)
    return social_service.rating_summary(db, book, user)


# ----------------------------
# Follows
# ----------------------------
@router.get("/books/{slug}/follow", response_model=FollowStatus)
def get_follow(
    book: Book = Depends(get_book),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return social_service.follow_status(db, book, user)


@router.post("/books/{slug}/follow", response_model=FollowStatus)
def follow_book(
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return social_service.follow_book(db, book, user)


@router.delete("/books/{slug}/follow", response_model=FollowStatus)
def unfollow_book(
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return social_service.unfollow_book(db, book, user)


# ----------------------------
# Comments
# ----------------------------
@router.get("/books/{slug}/comments", response_model=List[CommentResponse])
def list_comments(
    chapter: Optional[str] = None,
    book: Book = Depends(get_book),
    db: Session = Depends(get_db),
):
    """Comment threads on the book, or on one chapter with ``?chapter=<chapter_slug>``."""
    comments = social_service.list_comments(db, book, chapter_slug=chapter)
    return social_service.comment_tree(comments)


@router.post("/books/{slug}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def create_comment(
    payload: CommentCreate,
    book: Book = Depends(get_book),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        comment = social_service.create_comment(db, book, user, payload)
    return social_service.comment_tree([comment])[0]


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with service_errors():
        social_service.delete_comment(db, user, parse_uuid(comment_id, "Comment"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
