from pydantic import BaseModel, Field
from typing import Annotated
from readowl.schemas.common import HttpUrlOrEmpty, RequiredHttpUrlStr, StrippedStr

BANNERS_MAX = 50


class BannerItem(BaseModel):
    name: Annotated[StrippedStr, Field(min_length=1, max_length=150)]
    image_url: RequiredHttpUrlStr
    link_url: HttpUrlOrEmpty = ""
    order: int = Field(ge=0)

    class Config:
        from_attributes = True


class BannerPayload(BaseModel):
    banners: list[BannerItem] = Field(max_length=BANNERS_MAX)


class BannerList(BaseModel):
    banners: list[BannerItem]
