"""인메모리 SQLite 로 요청 단위 트랜잭션의 커밋/롤백을 테스트합니다."""
import logging

import pytest

from fastuow import context
from fastuow.core import FastUoWError
from fastuow.orm import SessionFactory
from fastuow.plugin import SqlAlchemyPlugin
from fastuow.uow import SqlAlchemyUnitOfWork
from tests import count_books, random_isbn
from tests.app.models import Book


def test_persisted_entity_is_durable_after_request(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory
):
    isbn = random_isbn()

    ctx = plugin.on_request_received()
    context.persist(Book(isbn, "Dune"))
    plugin.on_request_finally(ctx)

    assert count_books(session_factory, isbn) == 1


def test_rollback_only_entity_is_not_durable(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory
):
    isbn = random_isbn()

    ctx = plugin.on_request_received()
    context.persist(Book(isbn, "Dune"))
    context.get_session().flush()  # INSERT 는 실행되지만 커밋되면 안됩니다.
    context.get_transaction().set_rollback_only()
    plugin.on_request_finally(ctx)

    assert count_books(session_factory, isbn) == 0


def test_session_commit_is_blocked_when_rollback_only(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory
):
    isbn = random_isbn()

    ctx = plugin.on_request_received()
    context.persist(Book(isbn, "Dune"))
    context.set_rollback_only()

    with pytest.raises(FastUoWError):
        context.get_session().commit()

    plugin.on_request_finally(ctx)

    assert count_books(session_factory, isbn) == 0


def test_rollback_only_survives_rollback(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory
):
    ctx = plugin.on_request_received()
    context.persist(Book(random_isbn("first"), "first"))
    context.set_rollback_only()
    context.get_transaction().rollback()
    context.persist(Book(random_isbn("second"), "second"))

    assert context.get_transaction().rollback_only
    plugin.on_request_finally(ctx)

    assert count_books(session_factory) == 0


def test_failed_request_is_not_durable(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory
):
    isbn = random_isbn()

    ctx = plugin.on_request_received()
    context.persist(Book(isbn, "Dune"))
    plugin.on_request_finally(ctx, error=ValueError("bad request"))

    assert count_books(session_factory, isbn) == 0


def test_leaked_request_is_never_committed(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory
):
    leaked_isbn, isbn = random_isbn("leaked"), random_isbn()

    plugin.on_request_received()
    context.persist(Book(leaked_isbn, "Leaked"))
    context.get_session().flush()

    ctx = plugin.on_request_received()
    context.persist(Book(isbn, "Dune"))
    plugin.on_request_finally(ctx)

    assert count_books(session_factory, leaked_isbn) == 0
    assert count_books(session_factory, isbn) == 1


def test_work_after_explicit_commit_is_committed_at_end(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory
):
    first, second = random_isbn("first"), random_isbn("second")

    ctx = plugin.on_request_received()
    context.persist(Book(first, "first"))
    context.get_session().commit()
    context.persist(Book(second, "second"))  # autobegin 으로 새 트랜잭션 시작
    assert context.get_transaction().is_active
    plugin.on_request_finally(ctx)

    assert count_books(session_factory) == 2


def test_commit_failure_is_swallowed_and_next_request_works(
    plugin: SqlAlchemyPlugin, session_factory: SessionFactory, caplog
):
    isbn = random_isbn()

    ctx = plugin.on_request_received()
    context.persist(Book(isbn, "Dune"))
    context.persist(Book(isbn, "Dune (duplicated)"))  # unique 제약조건 위반

    with caplog.at_level(logging.ERROR, logger="fastuow"):
        plugin.on_request_finally(ctx)

    assert "IntegrityError" in caplog.text
    assert context.peek_context() is None
    assert count_books(session_factory, isbn) == 0

    ctx = plugin.on_request_received()
    context.persist(Book(isbn, "Dune"))
    plugin.on_request_finally(ctx)

    assert count_books(session_factory, isbn) == 1


def test_uow_rolls_back_on_error(session_factory: SessionFactory):
    class MyException(Exception):
        pass

    isbn = random_isbn()
    try:
        with SqlAlchemyUnitOfWork(session_factory) as uow:
            uow.persist(Book(isbn, "Dune"))
            raise MyException()
    except MyException:
        pass

    assert count_books(session_factory, isbn) == 0
