"""Tests for the admin-managed home banners."""
from unittest.mock import patch

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from readowl.models import Banner, EventLog
from readowl.services import home_service
from conftest import auth_headers


def _banner(n: int, **overrides):
    banner = {
        "name": f"Banner {n}",
        "image_url": f"https://cdn.readowl.test/{n}.png",
        "link_url": "",
        "order": n,
    }
    banner.update(overrides)
    return banner


def test_get_banners_empty(client):
    response = client.get("/api/banners")
    assert response.status_code == 200
    assert response.json() == {"banners": []}


def test_admin_replaces_banner_set(client, db: Session, admin):
    headers = auth_headers(admin)
    first = client.put("/api/banners", json={"banners": [_banner(1), _banner(2)]}, headers=headers)
    assert first.status_code == 204

    second = client.put(
        "/api/banners",
        json={"banners": [
            _banner(
                2,
                name="  Segundo  ",
                image_url=" https://cdn.readowl.test/2.png ",
                link_url=" https://readowl.test/promo ",
            ),
            _banner(0, name="Primeiro"),
        ]},
        headers=headers,
    )
    assert second.status_code == 204
    banners = client.get("/api/banners").json()["banners"]
    assert [b["name"] for b in banners] == ["Primeiro", "Segundo"]
    assert banners[1]["link_url"] == "https://readowl.test/promo"
    assert banners[1]["image_url"] == "https://cdn.readowl.test/2.png"
    assert banners[0]["link_url"] == ""
    assert db.query(Banner).count() == 2
    assert db.query(EventLog).filter(EventLog.event_name == "banners_replaced").count() == 2


def test_replace_with_empty_list_clears(client, db: Session, admin):
    headers = auth_headers(admin)
    client.put("/api/banners", json={"banners": [_banner(1)]}, headers=headers)
    assert client.put("/api/banners", json={"banners": []}, headers=headers).status_code == 204
    assert db.query(Banner).count() == 0


def test_non_admin_cannot_replace(client, reader):
    assert client.put("/api/banners", json={"banners": []}).status_code == 401
    response = client.put("/api/banners", json={"banners": []}, headers=auth_headers(reader))
    assert response.status_code == 403


def test_banner_validation(client, db: Session, admin):
    headers = auth_headers(admin)
    invalid = [
        {"banners": [_banner(1, name="")]},
        {"banners": [_banner(1, name="n" * 151)]},
        {"banners": [_banner(1, image_url="not a url")]},
        {"banners": [_banner(1, link_url="javascript:alert(1)")]},
        {"banners": [_banner(1, order=-1)]},
        {"banners": [_banner(i) for i in range(51)]},
    ]
    for payload in invalid:
        assert client.put("/api/banners", json=payload, headers=headers).status_code == 422
    assert db.query(Banner).count() == 0


def test_replacing_banners_invalidates_home_cache(client, db: Session, admin):
    client.get("/api/home")
    assert home_service.ranking_cache.get() is not None
    client.put("/api/banners", json={"banners": [_banner(1)]}, headers=auth_headers(admin))
    assert home_service.ranking_cache.get() is None
    assert [b["name"] for b in client.get("/api/home").json()["banners"]] == ["Banner 1"]


def test_get_banners_never_fails(client):
    boom = OperationalError("SELECT", {}, Exception("boom"))
    with patch.object(Session, "query", side_effect=boom):
        response = client.get("/api/banners")
    assert response.status_code == 200
    assert response.json() == {"banners": []}
