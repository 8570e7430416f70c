from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, Optional
from datetime import datetime
from readowl.models import BookStatus
from readowl.schemas.common import AuthorSummary, HttpUrlStr, StrippedStr

BOOK_TITLE_MAX = 200
BOOK_SYNOPSIS_MAX = 1000
BOOK_FREQ_MAX = 50

# Master genre list, the only names a book may be tagged with
BOOK_GENRES_MASTER: tuple[str, ...] = (
    "Ação", "Adulto", "Alta Fantasia", "Aventura", "Autoajuda", "Baixa Fantasia", "Biografia",
    "Biopunk", "Ciência", "Comédia", "Cyberpunk", "Dieselpunk", "Distopia", "Documentário",
    "Drama", "Ecchi", "Educativo", "Espacial", "Esportes", "Fantasia", "Fantasia Sombria",
    "Fantasia Urbana", "Fatos Reais", "Ficção Científica", "Ficção Histórica", "Filosófico",
    "Futurístico", "GameLit", "Gótico", "Harém", "Histórico", "Horror", "Isekai", "LitRPG",
    "Lírico", "Mecha", "Militar", "Mistério", "Não-Humano", "Pós-Apocalíptico", "Político",
    "Psicológico", "Romance", "Sátira", "Seinen", "Shonen", "Shoujo", "Slice of Life",
    "Sobrenatural", "Steampunk", "Suspense", "Terror", "Tragédia", "Vida Escolar", "Zumbi",
)


def _clean_genres(value: Optional[list[str]]) -> Optional[list[str]]:
    """Trim, drop blanks and duplicates, reject names outside the master list."""
    if value is None:
        return None
    cleaned: list[str] = []
    for name in value:
        name = (name or "").strip()
        if not name:
            continue
        if name not in BOOK_GENRES_MASTER:
            raise ValueError(f"Unknown genre: {name}")
        if name not in cleaned:
            cleaned.append(name)
    if not cleaned:
        raise ValueError("Select at least one genre")
    return cleaned


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value or None


Title = Annotated[StrippedStr, Field(min_length=1, max_length=BOOK_TITLE_MAX)]
Synopsis = Annotated[StrippedStr, Field(min_length=1, max_length=BOOK_SYNOPSIS_MAX)]
ReleaseFrequency = Annotated[
    Optional[Annotated[StrippedStr, Field(max_length=BOOK_FREQ_MAX)]],
    AfterValidator(_blank_to_none),
]
GenreList = Annotated[list[str], AfterValidator(_clean_genres)]


class BookCreate(BaseModel):
    title: Title
    synopsis: Synopsis
    release_frequency: ReleaseFrequency = None
    cover_url: HttpUrlStr = None
    status: BookStatus = BookStatus.ONGOING
    genres: GenreList = Field(min_length=1)


class BookUpdate(BaseModel):
    title: Optional[Title] = None
    synopsis: Optional[Synopsis] = None
    release_frequency: ReleaseFrequency = None
    cover_url: HttpUrlStr = None
    status: Optional[BookStatus] = None
    genres: Optional[GenreList] = None


class BookDeleteRequest(BaseModel):
    title_confirm: str
    password: Optional[str] = None


class BookStats(BaseModel):
    views: int = 0
    chapters: int = 0
    followers: int = 0
    rating_average: float = 0.0
    rating_count: int = 0


class BookCard(BaseModel):
    """Compact representation used by lists and home carousels."""
    id: str
    slug: str
    title: str
    cover_url: Optional[str] = None
    status: BookStatus
    author_name: str
    genres: list[str] = []
    score: Optional[float] = None
    rating_average: Optional[float] = None
    rating_count: Optional[int] = None


class BookResponse(BaseModel):
    id: str
    slug: str
    title: str
    synopsis: str
    release_frequency: Optional[str]
    cover_url: Optional[str]
    status: BookStatus
    author: AuthorSummary
    genres: list[str]
    stats: BookStats
    created_at: datetime
    updated_at: datetime


class LibraryResponse(BaseModel):
    authored: list[BookCard]
    following: list[BookCard]
