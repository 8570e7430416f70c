"""Tests for volumes, chapters and chapter views."""
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from readowl.models import BookFollow, Chapter, ChapterView, EventLog, Notification, NotificationType
from readowl.schemas.chapter import ChapterCreate
from readowl.services import chapter_service
from readowl.utils.timing import utcnow
from conftest import auth_headers


@pytest.fixture
def volume_id(client, book, author) -> str:
    response = client.post(
        f"/api/books/{book.slug}/volumes", json={"title": "Volume Um"}, headers=auth_headers(author)
    )
    assert response.status_code == 201
    return response.json()["id"]


def _post_chapter(client, book, user, title, volume_id=None, content="Era uma vez."):
    body = {"title": title, "content": content}
    if volume_id:
        body["volume_id"] = volume_id
    return client.post(f"/api/books/{book.slug}/chapters", json=body, headers=auth_headers(user))


def test_volumes_get_increasing_order(client, book, author):
    headers = auth_headers(author)
    for title in ("Primeiro", "Segundo"):
        assert client.post(f"/api/books/{book.slug}/volumes", json={"title": title}, headers=headers).status_code == 201

    volumes = client.get(f"/api/books/{book.slug}/volumes").json()
    assert [(v["title"], v["order"]) for v in volumes] == [("Primeiro", 1), ("Segundo", 2)]


def test_volume_write_requires_owner(client, book, reader):
    response = client.post(
        f"/api/books/{book.slug}/volumes", json={"title": "Intruso"}, headers=auth_headers(reader)
    )
    assert response.status_code == 403


def test_rename_volume(client, book, author, volume_id):
    response = client.put(
        f"/api/books/{book.slug}/volumes/{volume_id}", json={"title": "Renomeado"}, headers=auth_headers(author)
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Renomeado"
    missing = client.put(
        f"/api/books/{book.slug}/volumes/not-a-uuid", json={"title": "X"}, headers=auth_headers(author)
    )
    assert missing.status_code == 404


def test_chapter_order_within_volume_and_book(client, book, author, volume_id):
    assert _post_chapter(client, book, author, "Prólogo").json()["order"] == 1
    assert _post_chapter(client, book, author, "Cap 1", volume_id).json()["order"] == 1
    assert _post_chapter(client, book, author, "Cap 2", volume_id).json()["order"] == 2
    # outside any volume the order continues after every chapter of the book
    assert _post_chapter(client, book, author, "Extra").json()["order"] == 3

    listing = client.get(f"/api/books/{book.slug}/chapters").json()
    assert [c["slug"] for c in listing["volumes"][0]["chapters"]] == ["cap-1", "cap-2"]
    assert [c["slug"] for c in listing["unassigned"]] == ["prologo", "extra"]


def test_chapter_slug_unique_per_book(client, make_book, book, author):
    first = _post_chapter(client, book, author, "Capítulo")
    second = _post_chapter(client, book, author, "Capítulo")
    assert first.json()["slug"] == "capitulo"
    assert second.json()["slug"] == "capitulo-2"

    other = make_book(author, title="Outro Livro")
    assert _post_chapter(client, other, author, "Capítulo").json()["slug"] == "capitulo"


def test_chapter_volume_must_belong_to_book(client, make_book, book, author):
    other = make_book(author, title="Outro Livro")
    foreign = client.post(
        f"/api/books/{other.slug}/volumes", json={"title": "Alheio"}, headers=auth_headers(author)
    ).json()["id"]

    assert _post_chapter(client, book, author, "Cap", foreign).status_code == 400
    assert _post_chapter(client, book, author, "Cap", "garbage").status_code == 400


def test_chapter_requires_content_and_owner(client, book, author, reader):
    assert _post_chapter(client, book, author, "Vazio", content="   ").status_code == 422
    assert _post_chapter(client, book, reader, "Intruso").status_code == 403


def test_create_chapter_notifies_followers_and_logs_event(client, db: Session, book, author, reader, admin):
    db.add_all([
        BookFollow(book_id=book.id, user_id=reader.id),
        BookFollow(book_id=book.id, user_id=author.id),
    ])
    db.commit()

    response = _post_chapter(client, book, author, "Novo Capítulo")
    assert response.status_code == 201

    notifications = db.query(Notification).all()
    assert len(notifications) == 1
    assert notifications[0].user_id == reader.id
    assert notifications[0].type == NotificationType.NEW_CHAPTER
    assert notifications[0].chapter_title == "Novo Capítulo"
    assert notifications[0].actor_name == author.name
    assert db.query(EventLog).filter(EventLog.event_name == "chapter_published").count() == 1


def test_read_chapter_with_neighbours(client, book, author, volume_id):
    _post_chapter(client, book, author, "Um", volume_id)
    _post_chapter(client, book, author, "Dois", volume_id)
    _post_chapter(client, book, author, "Epílogo")

    body = client.get(f"/api/books/{book.slug}/chapters/dois").json()
    assert body["content"] == "Era uma vez."
    assert body["book_slug"] == book.slug
    assert body["previous_slug"] == "um"
    assert body["next_slug"] == "epilogo"
    assert client.get(f"/api/books/{book.slug}/chapters/nada").status_code == 404


def test_update_chapter_moves_between_volumes(client, book, author, volume_id):
    _post_chapter(client, book, author, "Solto")
    _post_chapter(client, book, author, "Dentro", volume_id)

    response = client.put(
        f"/api/books/{book.slug}/chapters/solto",
        json={"title": "Agora Dentro", "volume_id": volume_id},
        headers=auth_headers(author),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["slug"] == "agora-dentro"
    assert body["volume_id"] == volume_id
    assert body["order"] == 2


def test_delete_volume_keeps_chapters(client, db: Session, book, author, volume_id):
    _post_chapter(client, book, author, "Solto")
    _post_chapter(client, book, author, "Dentro", volume_id)

    response = client.delete(f"/api/books/{book.slug}/volumes/{volume_id}", headers=auth_headers(author))
    assert response.status_code == 204

    listing = client.get(f"/api/books/{book.slug}/chapters").json()
    assert listing["volumes"] == []
    assert [(c["slug"], c["order"]) for c in listing["unassigned"]] == [("solto", 1), ("dentro", 2)]
    assert db.query(Chapter).count() == 2


def test_delete_chapter(client, db: Session, book, author, reader):
    _post_chapter(client, book, author, "Apagar")
    url = f"/api/books/{book.slug}/chapters/apagar"
    assert client.delete(url, headers=auth_headers(reader)).status_code == 403
    assert client.delete(url, headers=auth_headers(author)).status_code == 204
    assert db.query(Chapter).count() == 0


def test_anonymous_views_always_count(client, book, author):
    _post_chapter(client, book, author, "Lido")
    for _ in range(3):
        response = client.post(f"/api/books/{book.slug}/chapters/lido/views")
        assert response.json()["recorded"] is True
    assert client.get(f"/api/books/{book.slug}/views").json() == {"count": 3}


def test_authenticated_views_are_deduplicated(client, db: Session, book, author, reader):
    _post_chapter(client, book, author, "Lido")
    url = f"/api/books/{book.slug}/chapters/lido/views"

    first = client.post(url, headers=auth_headers(reader)).json()
    second = client.post(url, headers=auth_headers(reader)).json()
    assert first == {"recorded": True, "count": 1}
    assert second == {"recorded": False, "count": 1}

    # once the window has passed the same reader counts again
    view = db.query(ChapterView).one()
    view.created_at = utcnow() - timedelta(minutes=31)
    db.commit()
    assert client.post(url, headers=auth_headers(reader)).json() == {"recorded": True, "count": 2}


def test_reading_a_chapter_records_a_view(client, book, author):
    _post_chapter(client, book, author, "Lido")
    client.get(f"/api/books/{book.slug}/chapters/lido")
    assert client.get(f"/api/books/{book.slug}/views").json() == {"count": 1}


def test_chapter_view_count_is_owner_only(client, book, author, reader, admin):
    _post_chapter(client, book, author, "Lido")
    url = f"/api/books/{book.slug}/chapters/lido/views"
    client.post(url)

    assert client.get(url).status_code == 401
    assert client.get(url, headers=auth_headers(reader)).status_code == 403
    assert client.get(url, headers=auth_headers(author)).json() == {"count": 1}
    assert client.get(url, headers=auth_headers(admin)).json() == {"count": 1}


def test_record_chapter_view_service(db: Session, book, author, reader):
    chapter = chapter_service.create_chapter(db, book, author, ChapterCreate(title="Serviço", content="x"))
    assert chapter_service.record_chapter_view(db, chapter, None)
    assert chapter_service.record_chapter_view(db, chapter, reader)
    assert not chapter_service.record_chapter_view(db, chapter, reader)
    assert chapter_service.count_chapter_views(db, chapter) == 2
