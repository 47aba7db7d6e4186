"""API tests through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from shelfsync.core.config import Settings
from shelfsync.core.dependencies import build_context
from shelfsync.domain.entities import SearchCandidate
from shelfsync.domain.exceptions import SearchFailed
from shelfsync.domain.repositories import ICatalogSearch
from shelfsync.infrastructure.remote.memory import InMemoryRemoteBackend
from shelfsync.main import create_app


class FakeCatalog(ICatalogSearch):

    def __init__(self):
        self.fail = False

    async def search(self, query):
        if self.fail:
            raise SearchFailed("google_books: boom; open_library: boom")
        return [
            SearchCandidate(id="gbooks:dune", title="Dune", authors=["Frank Herbert"]),
            SearchCandidate(id="gbooks:emma", title="Emma", authors=["Jane Austen"]),
        ]


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def backend():
    return InMemoryRemoteBackend()


@pytest.fixture
def client(tmp_path, catalog, backend):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    context = build_context(settings, remote_backend=backend, catalog=catalog)
    with TestClient(create_app(settings, context=context)) as test_client:
        yield test_client


def add(client, book_id="gbooks:dune", book_list="wantToRead"):
    return client.post("/books/", json={"id": book_id, "title": "Dune", "authors": ["Frank Herbert"], "book_list": book_list})


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_add_and_list(client):
    response = add(client)

    assert response.status_code == 201
    body = response.json()
    assert body["book"]["id"] == "gbooks:dune"
    assert body["book"]["rating"] == 0
    assert body["remote"] == "skipped"

    listed = client.get("/books/", params={"book_list": "wantToRead"}).json()
    assert [b["id"] for b in listed] == ["gbooks:dune"]


def test_duplicate_add_returns_conflict(client):
    add(client, book_list="read")

    response = add(client, book_list="own")

    assert response.status_code == 409
    assert response.json()["detail"]["existing_list"] == "read"


def test_unknown_book_returns_404(client):
    assert client.get("/books/missing").status_code == 404
    assert client.post("/books/missing/move", json={"book_list": "read"}).status_code == 404


def test_rating_out_of_range_returns_422(client):
    add(client)

    assert client.put("/books/gbooks:dune/rating", json={"rating": 7}).status_code == 422
    response = client.put("/books/gbooks:dune/rating", json={"rating": 5})
    assert response.status_code == 200
    assert response.json()["book"]["rating"] == 5


def test_move_updates_presence_and_counts(client):
    add(client)

    response = client.post("/books/gbooks:dune/move", json={"book_list": "own"})
    assert response.status_code == 200

    presence = client.get("/books/gbooks:dune/presence").json()
    assert presence == {"exists": True, "book_list": "own"}
    counts = client.get("/books/counts").json()
    assert counts["counts"] == {"wantToRead": 0, "read": 0, "own": 1}
    assert counts["total"] == 1


def test_remove_is_idempotent(client):
    add(client)

    assert client.delete("/books/gbooks:dune").status_code == 200
    assert client.delete("/books/gbooks:dune").status_code == 200
    assert client.get("/books/gbooks:dune/presence").json()["exists"] is False


def test_categories_and_grouping(client):
    add(client, book_list="own")
    client.put("/categories/", json={"labels": ["Fiction", "Fiction", " Classics "]})

    response = client.put("/books/gbooks:dune/categories", json={"categories": ["Fiction"]})
    assert response.status_code == 200
    assert client.get("/categories/").json()["labels"] == ["Fiction", "Classics"]

    groups = client.get("/books/owned/grouped").json()
    assert [g["label"] for g in groups] == ["Fiction"]

    client.delete("/categories/Fiction")
    groups = client.get("/books/owned/grouped").json()
    assert [g["label"] for g in groups] == [None]


def test_sign_in_uploads_and_sign_out_keeps_local(client, backend):
    add(client, book_list="read")

    status = client.post("/auth/signin", json={"user_id": "alice"}).json()
    assert status["state"] == "signed_in"
    assert status["user_id"] == "alice"
    assert status["live"] is True
    assert [r.id for r in backend.snapshot("alice")] == ["gbooks:dune"]

    status = client.post("/auth/signout").json()
    assert status["state"] == "signed_out"
    assert status["live"] is False
    assert client.get("/books/gbooks:dune/presence").json()["exists"] is True


def test_search_marks_books_already_on_a_list(client):
    add(client, book_list="read")

    body = client.get("/search/", params={"q": "classics"}).json()

    on_list = {r["id"]: r["on_list"] for r in body["results"]}
    assert on_list == {"gbooks:dune": "read", "gbooks:emma": None}
    assert body["total"] == 2


def test_search_failure_returns_503(client, catalog):
    catalog.fail = True

    response = client.get("/search/", params={"q": "dune"})

    assert response.status_code == 503
