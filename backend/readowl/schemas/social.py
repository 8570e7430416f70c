from pydantic import BaseModel, Field
from typing import Annotated, Optional
from datetime import datetime
from readowl.schemas.common import AuthorSummary, StrippedStr

COMMENT_MAX = 2000


class RatingRequest(BaseModel):
    score: int = Field(ge=1, le=5)


class RatingSummary(BaseModel):
    average: float
    count: int
    percent: float  # average on a 0-100 scale
    my_score: Optional[int] = None


class FollowStatus(BaseModel):
    following: bool
    count: int


class CommentCreate(BaseModel):
    content: Annotated[StrippedStr, Field(min_length=1, max_length=COMMENT_MAX)]
    chapter_slug: Optional[str] = None
    parent_id: Optional[str] = None


class CommentResponse(BaseModel):
    id: str
    content: str
    author: AuthorSummary
    chapter_slug: Optional[str] = None
    parent_id: Optional[str] = None
    created_at: datetime
    replies: list["CommentResponse"] = []
