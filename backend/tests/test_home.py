"""Tests for metric collection, home carousels and the rankings endpoint."""
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from readowl.models import BookFollow, BookRating, Chapter, ChapterView, Comment, EventLog
from readowl.services import home_service
from readowl.services.metrics import collect_book_metrics
from readowl.utils.timing import utcnow


def _chapter(db: Session, book, slug="um", created_at=None) -> Chapter:
    chapter = Chapter(book_id=book.id, title=slug, slug=slug, content="texto", order=1)
    if created_at is not None:
        chapter.created_at = created_at
    db.add(chapter)
    db.commit()
    return chapter


def _views(db: Session, chapter, count, created_at=None):
    for _ in range(count):
        db.add(ChapterView(chapter_id=chapter.id, created_at=created_at or utcnow()))
    db.commit()


@pytest.fixture
def catalogue(db: Session, make_book, make_user, author):
    """Three books with different activity profiles."""
    readers = [make_user() for _ in range(6)]
    hot = make_book(author, title="Em Alta")
    classic = make_book(author, title="Clássico")
    quiet = make_book(author, title="Silencioso")

    old = utcnow() - timedelta(days=60)

    hot_chapter = _chapter(db, hot)
    _views(db, hot_chapter, 20)
    db.add(Comment(book_id=hot.id, user_id=readers[0].id, content="uau"))
    db.add(BookRating(book_id=hot.id, user_id=readers[0].id, score=4))

    classic_chapter = _chapter(db, classic, created_at=old)
    _views(db, classic_chapter, 50, created_at=old)
    for reader in readers:
        db.add(BookRating(book_id=classic.id, user_id=reader.id, score=5, created_at=old, updated_at=old))
        db.add(BookFollow(book_id=classic.id, user_id=reader.id, created_at=old))
    db.commit()
    return {"hot": hot, "classic": classic, "quiet": quiet}


def test_collect_book_metrics_all_time(db: Session, catalogue):
    metrics = collect_book_metrics(db)
    hot = metrics[catalogue["hot"].id]
    classic = metrics[catalogue["classic"].id]
    quiet = metrics[catalogue["quiet"].id]

    assert (hot.views, hot.rating_count, hot.rating_sum, hot.comments, hot.follows) == (20, 1, 4, 1, 0)
    assert (classic.views, classic.rating_count, classic.rating_sum, classic.follows) == (50, 6, 30, 6)
    assert quiet.is_empty()


def test_collect_book_metrics_windowed(db: Session, catalogue):
    metrics = collect_book_metrics(db, since=utcnow() - timedelta(days=14))
    assert metrics[catalogue["hot"].id].views == 20
    assert metrics[catalogue["classic"].id].is_empty()


def test_collect_book_metrics_for_selected_books(db: Session, catalogue):
    only = collect_book_metrics(db, book_ids=[catalogue["quiet"].id])
    assert list(only) == [catalogue["quiet"].id]
    assert collect_book_metrics(db, book_ids=[]) == {}


def test_compute_carousels(db: Session, catalogue):
    carousels = home_service.compute_carousels(db)

    assert [c.slug for c in carousels.trending] == ["em-alta"]
    assert [c.slug for c in carousels.popular] == ["em-alta"]
    assert [c.slug for c in carousels.top_rated] == ["classico", "em-alta"]
    top = carousels.top_rated[0]
    assert top.rating_count == 6
    assert top.rating_average == 5.0
    assert top.author_name == "Ana Autora"
    assert top.genres == ["Fantasia"]
    # newest chapter first, books without chapters last
    assert [c.slug for c in carousels.recent] == ["em-alta", "classico", "silencioso"]


def test_ranked_cards_show_all_time_rating(db: Session, catalogue, make_user):
    veteran = make_user()
    old = utcnow() - timedelta(days=60)
    db.add(BookRating(book_id=catalogue["hot"].id, user_id=veteran.id, score=2, created_at=old, updated_at=old))
    db.commit()

    _, cards = home_service.rank_books(db, "trending")
    assert [c.slug for c in cards] == ["em-alta"]
    # the old rating is outside the trending window but still shows on the card
    assert cards[0].rating_count == 2
    assert cards[0].rating_average == 3.0


def test_home_endpoint_uses_cache(client, db: Session, catalogue, make_book, author):
    first = client.get("/api/home")
    assert first.status_code == 200
    body = first.json()
    assert set(body["carousels"]) == {"trending", "popular", "top_rated", "recent"}
    assert body["banners"] == []

    make_book(author, title="Novidade")
    cached = client.get("/api/home").json()
    assert len(cached["carousels"]["recent"]) == 3

    home_service.invalidate()
    fresh = client.get("/api/home").json()
    assert len(fresh["carousels"]["recent"]) == 4


def test_rankings_endpoint(client, catalogue):
    trending = client.get("/api/rankings/trending").json()
    assert trending["kind"] == "trending"
    assert trending["window_days"] == 14
    assert [c["slug"] for c in trending["items"]] == ["em-alta"]

    wide = client.get("/api/rankings/popular?window_days=90").json()
    assert [c["slug"] for c in wide["items"]] == ["classico", "em-alta"]

    top = client.get("/api/rankings/top_rated?limit=1").json()
    assert top["window_days"] is None
    assert [c["slug"] for c in top["items"]] == ["classico"]


def test_rankings_endpoint_validation(client):
    assert client.get("/api/rankings/bogus").status_code == 404
    assert client.get("/api/rankings/trending?limit=0").status_code == 422
    assert client.get("/api/rankings/trending?limit=51").status_code == 422
    assert client.get("/api/rankings/trending?window_days=0").status_code == 422


def test_ranking_cache_ttl():
    cache = home_service.RankingCache(ttl_seconds=0)
    cache.set(home_service.HomeCarousels(trending=[], popular=[], top_rated=[], recent=[]))
    assert cache.get() is None

    cache = home_service.RankingCache(ttl_seconds=60)
    value = home_service.HomeCarousels(trending=[], popular=[], top_rated=[], recent=[])
    cache.set(value)
    assert cache.get() is value
    cache.invalidate()
    assert cache.get() is None


def test_refresh_rankings_job(db: Session, catalogue):
    from readowl.scheduler import refresh_rankings_job

    refresh_rankings_job()
    cached = home_service.ranking_cache.get()
    assert cached is not None
    assert [c.slug for c in cached.top_rated] == ["classico", "em-alta"]
    assert db.query(EventLog).filter(EventLog.event_name == "rankings_refreshed").count() == 1
