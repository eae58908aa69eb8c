"""FastAPI 앱에서 요청 단위 트랜잭션을 테스트합니다."""
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from fastuow import context
from fastuow.api import get_uow, init_app
from fastuow.plugin import SqlAlchemyPlugin
from fastuow.uow import SqlAlchemyUnitOfWork
from tests import count_books, random_isbn
from tests.app.models import Book


@pytest.fixture
def app(properties: dict[str, str]):
    app = FastAPI(title="library")
    plugin = init_app(app, name="library", properties=properties)

    @app.post("/books", status_code=201)
    def add_book(isbn: str, title: str):
        context.persist(Book(isbn, title))
        return {"isbn": isbn}

    @app.post("/books/async", status_code=201)
    async def add_book_async(isbn: str, title: str):
        context.persist(Book(isbn, title))
        return {"isbn": isbn}

    @app.post("/books/draft", status_code=202)
    def add_draft(isbn: str, title: str, uow: SqlAlchemyUnitOfWork = Depends(get_uow)):
        uow.persist(Book(isbn, title))
        uow.set_rollback_only()
        return {"isbn": isbn}

    @app.post("/books/broken")
    def add_broken(isbn: str, title: str):
        context.persist(Book(isbn, title))
        raise RuntimeError("handler failed")

    @app.get("/books")
    def count(uow: SqlAlchemyUnitOfWork = Depends(get_uow)):
        return {"count": uow.session.scalar(select(func.count()).select_from(Book))}

    yield app

    plugin.close()


@pytest.fixture
def plugin(app: FastAPI) -> SqlAlchemyPlugin:
    return app.state.fastuow


@pytest.fixture
def client(app: FastAPI):
    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.parametrize("path", ["/books", "/books/async"])
def test_committed_request(client: TestClient, plugin: SqlAlchemyPlugin, path: str):
    isbn = random_isbn()

    r = client.post(path, params={"isbn": isbn, "title": "Dune"})

    assert r.status_code == 201
    assert count_books(plugin.session_factory, isbn) == 1
    assert client.get("/books").json() == {"count": 1}


def test_rollback_only_request(client: TestClient, plugin: SqlAlchemyPlugin):
    isbn = random_isbn()

    r = client.post("/books/draft", params={"isbn": isbn, "title": "Dune"})

    assert r.status_code == 202
    assert count_books(plugin.session_factory, isbn) == 0


def test_failed_request_is_rolled_back(client: TestClient, plugin: SqlAlchemyPlugin):
    isbn = random_isbn()

    r = client.post("/books/broken", params={"isbn": isbn, "title": "Dune"})

    assert r.status_code == 500
    assert count_books(plugin.session_factory, isbn) == 0
