from pydantic import BaseModel, Field
from typing import Annotated, Optional
from datetime import datetime
from readowl.schemas.common import StrippedStr

VOLUME_TITLE_MAX = 200
CHAPTER_TITLE_MAX = 200

VolumeTitle = Annotated[StrippedStr, Field(min_length=1, max_length=VOLUME_TITLE_MAX)]
ChapterTitle = Annotated[StrippedStr, Field(min_length=1, max_length=CHAPTER_TITLE_MAX)]
ChapterContent = Annotated[StrippedStr, Field(min_length=1)]


class VolumeCreate(BaseModel):
    title: VolumeTitle


class VolumeResponse(BaseModel):
    id: str
    title: str
    order: int


class ChapterCreate(BaseModel):
    title: ChapterTitle
    content: ChapterContent
    volume_id: Optional[str] = None


class ChapterUpdate(BaseModel):
    title: Optional[ChapterTitle] = None
    content: Optional[ChapterContent] = None
    volume_id: Optional[str] = None


class ChapterSummary(BaseModel):
    id: str
    slug: str
    title: str
    order: int
    volume_id: Optional[str] = None
    created_at: datetime


class ChapterResponse(ChapterSummary):
    content: str
    book_slug: str
    book_title: str
    previous_slug: Optional[str] = None
    next_slug: Optional[str] = None


class VolumeWithChapters(BaseModel):
    volume: VolumeResponse
    chapters: list[ChapterSummary]


class ChapterListResponse(BaseModel):
    volumes: list[VolumeWithChapters]
    unassigned: list[ChapterSummary]


class ViewCount(BaseModel):
    count: int


class ViewRecorded(BaseModel):
    recorded: bool
    count: int
