from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from readowl.schemas.banner import BannerItem
from readowl.schemas.book import BookCard


class HomeCarousels(BaseModel):
    trending: list[BookCard]
    popular: list[BookCard]
    top_rated: list[BookCard]
    recent: list[BookCard]


class HomeResponse(BaseModel):
    banners: list[BannerItem]
    carousels: HomeCarousels
    generated_at: datetime


class RankingResponse(BaseModel):
    kind: str
    window_days: Optional[int] = None
    items: list[BookCard]
