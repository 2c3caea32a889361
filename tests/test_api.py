"""Tests for the HTTP surface: JSON API under /api and the public page routes.

Each test gets its own PageStore rooted in a temporary directory, injected
through FastAPI's dependency overrides.
"""

import pytest
from bs4 import BeautifulSoup
from fastapi.testclient import TestClient

from pagestore.dependencies import get_page_store
from pagestore.main import app
from pagestore.models.page import PageMeta, SeoMeta
from pagestore.services.store import PageStore

_HTML = "<html><head><title>Old</title></head><body><h1>Hello</h1></body></html>"


@pytest.fixture
def store(tmp_path) -> PageStore:
    return PageStore(tmp_path / "data")


@pytest.fixture
def client(store):
    app.dependency_overrides[get_page_store] = lambda: store
    app.state.limiter._storage.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _push(client, title="Hello World", html=_HTML, **extra):
    body = {"seo_title": title, "description": f"About {title}", "keywords": ["a", "b"], "html": html}
    body.update(extra)
    return client.post("/api/pages", json=body)


# ---------------------------------------------------------------------------
# /api/pages
# ---------------------------------------------------------------------------


class TestPush:
    def test_created(self, client):
        resp = _push(client)
        assert resp.status_code == 201
        data = resp.json()
        uid = data["page_id"]
        assert len(uid) == 16
        assert data["url"].endswith(f"/pages/Hello%20World+{uid}")
        assert data["meta"]["page_uid"] == uid
        assert data["meta"]["seo"] == {
            "seo_title": "Hello World",
            "description": "About Hello World",
            "keywords": ["a", "b"],
        }
        assert data["meta"]["created_at"] > 0
        assert data["meta"]["view_count"] == 0

    def test_invalid_html_rejected(self, client, store):
        resp = _push(client, html="<div><span></div>")
        assert resp.status_code == 422
        data = resp.json()
        assert data["detail"].startswith("mismatched closing tag </div> at byte 11")
        assert data["byte_offset"] == 11
        assert store.list_pages() == []

    def test_empty_html_rejected(self, client):
        resp = _push(client, html="   ")
        assert resp.status_code == 422
        assert resp.json()["detail"] == "html is empty or whitespace"

    def test_lone_surrogate_rejected(self, client, store):
        body = b'{"seo_title": "x", "html": "<p>\\ud800</p>"}'
        resp = client.post("/api/pages", content=body, headers={"content-type": "application/json"})
        assert resp.status_code == 422
        assert store.list_pages() == []
        assert [p for p in store.base_dir.iterdir() if p.is_dir()] == []

    def test_missing_fields_rejected(self, client):
        resp = client.post("/api/pages", json={"seo_title": "x"})
        assert resp.status_code == 422


class TestRead:
    def test_get_by_uid(self, client):
        uid = _push(client).json()["page_id"]
        resp = client.get(f"/api/pages/{uid}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["page_id"] == uid
        assert data["html"] == _HTML

    def test_get_unknown(self, client):
        resp = client.get("/api/pages/DoesNotExist1234")
        assert resp.status_code == 404
        assert "DoesNotExist1234" in resp.json()["detail"]

    def test_list(self, client):
        first = _push(client, title="One").json()["page_id"]
        second = _push(client, title="Two").json()["page_id"]
        pages = client.get("/api/pages").json()["pages"]
        assert sorted(p["page_id"] for p in pages) == sorted([first, second])
        assert all("html" not in p for p in pages)

    def test_lookup_reports_missing_ids(self, client):
        uid = _push(client).json()["page_id"]
        resp = client.post("/api/pages/lookup", json={"ids": [uid, " ", "missing"]})
        assert resp.status_code == 200
        data = resp.json()
        assert [p["page_id"] for p in data["pages"]] == [uid]
        assert len(data["errors"]) == 1
        assert data["errors"][0].startswith("missing:")

    def test_lookup_requires_ids(self, client):
        assert client.post("/api/pages/lookup", json={"ids": []}).status_code == 422


class TestPatch:
    def test_meta_only_keeps_html(self, client, store):
        uid = _push(client).json()["page_id"]
        resp = client.patch(f"/api/pages/{uid}", json={"seo_title": "Renamed"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["meta"]["seo"]["seo_title"] == "Renamed"
        assert data["meta"]["seo"]["description"] == "About Hello World"
        assert data["url"].endswith(f"/pages/Renamed+{uid}")
        assert store.get_page_html(uid) == _HTML

    def test_html_only_keeps_meta(self, client, store):
        uid = _push(client).json()["page_id"]
        resp = client.patch(f"/api/pages/{uid}", json={"html": "<p>new</p>"})
        assert resp.status_code == 200
        assert resp.json()["meta"]["seo"]["seo_title"] == "Hello World"
        assert store.get_page_html(uid) == "<p>new</p>"

    def test_both(self, client, store):
        uid = _push(client).json()["page_id"]
        resp = client.patch(f"/api/pages/{uid}", json={"keywords": ["z"], "html": "<p>both</p>"})
        assert resp.status_code == 200
        assert resp.json()["meta"]["seo"]["keywords"] == ["z"]
        assert store.get_page_html(uid) == "<p>both</p>"

    def test_uid_and_created_at_are_stable(self, client):
        created = _push(client).json()
        resp = client.patch(f"/api/pages/{created['page_id']}", json={"description": "changed"})
        meta = resp.json()["meta"]
        assert meta["page_uid"] == created["meta"]["page_uid"]
        assert meta["created_at"] == created["meta"]["created_at"]

    def test_no_fields(self, client):
        uid = _push(client).json()["page_id"]
        resp = client.patch(f"/api/pages/{uid}", json={})
        assert resp.status_code == 422

    def test_invalid_html(self, client, store):
        uid = _push(client).json()["page_id"]
        resp = client.patch(f"/api/pages/{uid}", json={"html": "<p>"})
        assert resp.status_code == 422
        assert resp.json()["byte_offset"] == 0
        assert store.get_page_html(uid) == _HTML

    def test_unknown_page(self, client):
        resp = client.patch("/api/pages/DoesNotExist1234", json={"html": "<p>x</p>"})
        assert resp.status_code == 404


class TestDelete:
    def test_delete(self, client, store):
        uid = _push(client).json()["page_id"]
        resp = client.delete(f"/api/pages/{uid}")
        assert resp.status_code == 204
        assert client.get(f"/api/pages/{uid}").status_code == 404
        assert store.list_pages() == []

    def test_delete_unknown(self, client):
        assert client.delete("/api/pages/DoesNotExist1234").status_code == 404


def test_rebuild_index(client, store):
    _push(client, title="One")
    _push(client, title="Two")
    (store.base_dir / "index.json").unlink()
    resp = client.post("/api/index/rebuild")
    assert resp.status_code == 200
    assert resp.json() == {"pages_indexed": 2}


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------


class TestPublicPages:
    def test_render_injects_seo_and_counts_views(self, client):
        uid = _push(client).json()["page_id"]
        resp = client.get(f"/pages/Hello%20World+{uid}")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        soup = BeautifulSoup(resp.text, "lxml")
        assert [t.get_text() for t in soup.find_all("title")] == ["Hello World"]
        assert soup.find("meta", attrs={"name": "keywords"})["content"] == "a, b"

        client.get(f"/pages/anything+{uid}")
        meta = client.get(f"/api/pages/{uid}").json()["meta"]
        assert meta["view_count"] == 2

    def test_view_does_not_touch_updated_at(self, client):
        created = _push(client).json()
        uid = created["page_id"]
        client.get(f"/pages/x+{uid}")
        meta = client.get(f"/api/pages/{uid}").json()["meta"]
        assert meta["updated_at"] == created["meta"]["updated_at"]

    def test_render_by_uid_of_named_page(self, client, store):
        saved = store.create_page("named", PageMeta(seo=SeoMeta(seo_title="Named")), "<p>n</p>")
        assert client.get("/pages/Named+named").status_code == 200
        assert client.get(f"/pages/Named+{saved.page_uid}").status_code == 200

    def test_unknown_page_is_html_404(self, client):
        resp = client.get("/pages/Nothing+here")
        assert resp.status_code == 404
        assert "Page not found" in resp.text

    def test_slug_without_id_is_404(self, client):
        assert client.get("/pages/title+").status_code == 404

    def test_index(self, client):
        _push(client, title="Listed Page")
        resp = client.get("/")
        assert resp.status_code == 200
        soup = BeautifulSoup(resp.text, "lxml")
        assert [a.get_text() for a in soup.find_all("a")] == ["Listed Page"]

    def test_sitemap(self, client):
        uid = _push(client).json()["page_id"]
        resp = client.get("/sitemap.xml")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/xml")
        soup = BeautifulSoup(resp.text, "xml")
        assert [loc.get_text() for loc in soup.find_all("loc")] == [
            f"http://testserver/pages/Hello%20World+{uid}"
        ]
        assert soup.find("lastmod") is not None

    def test_sitemap_honours_forwarded_proto(self, client):
        _push(client)
        resp = client.get("/sitemap.xml", headers={"X-Forwarded-Proto": "https"})
        assert "<loc>https://testserver/pages/" in resp.text


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
