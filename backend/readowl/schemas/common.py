from pydantic import AfterValidator, BaseModel, BeforeValidator, HttpUrl, PlainSerializer
from typing import Annotated, Optional


class AuthorSummary(BaseModel):
    id: str
    name: str
    image: Optional[str] = None


def strip_text(value):
    return value.strip() if isinstance(value, str) else value


def blank_to_none(value):
    value = strip_text(value)
    if isinstance(value, str) and not value:
        return None
    return value


def url_or_none(value) -> Optional[str]:
    return None if value is None else str(value)


def url_or_empty(value) -> str:
    return "" if value is None else str(value)


StrippedStr = Annotated[str, BeforeValidator(strip_text)]

# http(s) URLs validated by pydantic and kept as plain strings, the way they are stored
HttpUrlStr = Annotated[
    Optional[HttpUrl],
    BeforeValidator(blank_to_none),
    AfterValidator(url_or_none),
    PlainSerializer(url_or_none, return_type=Optional[str]),
]
RequiredHttpUrlStr = Annotated[
    HttpUrl,
    BeforeValidator(strip_text),
    AfterValidator(str),
    PlainSerializer(str, return_type=str),
]
HttpUrlOrEmpty = Annotated[
    Optional[HttpUrl],
    BeforeValidator(blank_to_none),
    AfterValidator(url_or_empty),
    PlainSerializer(url_or_empty, return_type=str),
]
