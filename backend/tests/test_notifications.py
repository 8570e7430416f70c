"""Tests for the notification inbox."""
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from readowl.models import Notification, NotificationType
from readowl.services.notification_service import make_snippet
from readowl.utils.timing import utcnow
from conftest import auth_headers


@pytest.fixture
def inbox(db: Session, book, reader):
    now = utcnow()
    items = [
        Notification(
            user_id=reader.id,
            type=NotificationType.NEW_CHAPTER,
            book_id=book.id,
            book_title=book.title,
            book_slug=book.slug,
            chapter_title=f"Capítulo {i}",
            actor_name="Ana Autora",
            created_at=now - timedelta(minutes=10 - i),
        )
        for i in range(3)
    ]
    db.add_all(items)
    db.commit()
    return items


def test_list_newest_first(client, inbox, reader):
    response = client.get("/api/notifications", headers=auth_headers(reader))
    assert response.status_code == 200
    body = response.json()
    assert [n["chapter_title"] for n in body] == ["Capítulo 2", "Capítulo 1", "Capítulo 0"]
    assert body[0]["type"] == "NEW_CHAPTER"
    assert body[0]["book_slug"] == "a-coruja-noturna"
    assert body[0]["read"] is False


def test_notifications_are_private(client, inbox, author):
    assert client.get("/api/notifications", headers=auth_headers(author)).json() == []
    target = str(inbox[0].id)
    assert client.post(f"/api/notifications/{target}/read", headers=auth_headers(author)).status_code == 404
    assert client.delete(f"/api/notifications/{target}", headers=auth_headers(author)).status_code == 404
    assert client.get("/api/notifications").status_code == 401


def test_mark_read_and_delete(client, db: Session, inbox, reader):
    headers = auth_headers(reader)
    target = str(inbox[1].id)

    response = client.post(f"/api/notifications/{target}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["read"] is True

    assert client.delete(f"/api/notifications/{target}", headers=headers).status_code == 204
    assert len(client.get("/api/notifications", headers=headers).json()) == 2


def test_clear_all(client, db: Session, inbox, reader):
    assert client.delete("/api/notifications", headers=auth_headers(reader)).status_code == 204
    assert db.query(Notification).count() == 0


def test_notification_survives_book_deletion(db: Session, inbox, book):
    db.delete(book)
    db.commit()
    remaining = db.query(Notification).all()
    assert len(remaining) == 3
    assert all(n.book_id is None and n.book_title == "A Coruja Noturna" for n in remaining)


def test_make_snippet():
    assert make_snippet(None) is None
    assert make_snippet("  várias\n linhas  ") == "várias linhas"
    long = make_snippet("a" * 500)
    assert len(long) == 140
    assert long.endswith("…")
