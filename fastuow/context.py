"""요청 컨텍스트 모듈.

요청 하나의 UnitOfWork 는 :class:`RequestContext` 에 담겨 훅과 핸들러에 명시적으로
전달됩니다. 명시적으로 전달받기 어려운 코드를 위해 :func:`persist`,
:func:`get_session`, :func:`get_transaction` 같은 정적 접근자를 제공하며, 이들은
:mod:`contextvars` 에 바인딩된 현재 컨텍스트를 사용합니다.

``ContextVar`` 는 스레드마다, 그리고 asyncio 태스크마다 독립적이므로 WSGI 와
ASGI 서버 모두에서 요청 간에 세션이 공유되지 않습니다.
"""
from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from fastuow.core import FastUoWError

if TYPE_CHECKING:
    from fastuow.uow import SqlAlchemyUnitOfWork, Transaction

_current_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "fastuow_request_context", default=None
)


@dataclass
class RequestContext:
    """요청 하나의 퍼시스턴스 상태."""

    request: Any = None
    """호스트 프레임워크의 요청 객체."""
    uow: Optional[SqlAlchemyUnitOfWork] = None
    state: dict[str, Any] = field(default_factory=dict)

    def require_uow(self) -> SqlAlchemyUnitOfWork:
        if self.uow is None or not self.uow.active:
            raise FastUoWError("no active unit of work in request context")
        return self.uow


def bind(ctx: RequestContext) -> None:
    """현재 실행 컨텍스트에 요청 컨텍스트를 바인딩합니다."""
    _current_context.set(ctx)


def unbind() -> None:
    _current_context.set(None)


def peek_context() -> Optional[RequestContext]:
    """바인딩된 요청 컨텍스트를 리턴합니다. 없으면 ``None``."""
    return _current_context.get()


def current_context() -> RequestContext:
    ctx = _current_context.get()
    if ctx is None:
        raise FastUoWError("no request context bound; called outside of a request?")
    return ctx


def current_uow() -> SqlAlchemyUnitOfWork:
    """현재 요청의 UnitOfWork 를 리턴합니다."""
    return current_context().require_uow()


def get_session() -> Any:
    """현재 요청의 SqlAlchemy 세션을 리턴합니다."""
    return current_uow().session


def get_transaction() -> Transaction:
    """현재 요청의 트랜잭션을 리턴합니다."""
    uow = current_uow()
    assert uow.transaction is not None
    return uow.transaction


def persist(entity: Any) -> None:
    """현재 요청의 세션에 엔티티를 추가합니다."""
    current_uow().persist(entity)


def set_rollback_only() -> None:
    """현재 요청의 트랜잭션이 커밋되지 않도록 표시합니다."""
    current_uow().set_rollback_only()
