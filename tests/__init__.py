import uuid
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session


def random_suffix() -> str:
    """랜덤 ID뒤에 붙일 UUID 기반의 6자리 임의의 ID를 생성합니다."""
    return uuid.uuid4().hex[:6]


def random_isbn(name: str = "") -> str:
    """임의의 ISBN 을 생성합니다."""
    return f"isbn-{name}-{random_suffix()}"


def count_books(factory: Callable[[], Session], isbn: str = "") -> int:
    """새 세션으로 DB에 저장된 책 수를 셉니다."""
    from tests.app.models import Book

    stmt = select(func.count()).select_from(Book)
    if isbn:
        stmt = stmt.where(Book.isbn == isbn)  # type: ignore
    with factory() as session:
        return session.scalar(stmt)
