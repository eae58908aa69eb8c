from __future__ import annotations

import abc
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol

if TYPE_CHECKING:
    from fastuow.context import RequestContext


class AbstractSession(Protocol):
    """세션의 일반적인 작업(`begin`, `commit`, `rollback`) 을 추상화한 프로토콜.

    :class:`sqlalchemy.orm.Session` 과 테스트용 :class:`~fastuow.test.unit.FakeSession`
    이 이 프로토콜을 만족합니다.
    """

    new: Any
    dirty: Any
    deleted: Any

    def add(self, instance: Any) -> None:
        ...

    def begin(self) -> Any:
        ...

    def in_transaction(self) -> bool:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def close(self) -> None:
        ...


class AbstractUnitOfWork(AbstractContextManager["AbstractUnitOfWork"]):
    """UnitOfWork 패턴의 추상 인터페이스입니다.

    하나의 요청에서 사용되는 세션과 트랜잭션의 묶음입니다.
    ``with`` 블록 안에서 예외가 발생하면 롤백되고, 그렇지 않으면 커밋됩니다.
    """

    def __enter__(self) -> AbstractUnitOfWork:
        """``with`` 블록에 진입했을때 실행되는 메소드입니다."""
        self.begin()
        return self

    def __exit__(self, typ: Any = None, value: Any = None, traceback: Any = None) -> None:
        """``with`` 블록에서 빠져나갈 때 실행되는 메소드입니다."""
        if value is not None:
            self.set_rollback_only()
        self.finish()

    def commit(self) -> None:
        """트랜잭션을 커밋합니다."""
        self._commit()

    @abc.abstractmethod
    def begin(self) -> None:
        """세션을 열고 트랜잭션을 시작합니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        """트랜잭션을 롤백합니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def set_rollback_only(self) -> None:
        """트랜잭션이 커밋되지 않도록 표시합니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def finish(self) -> None:
        """트랜잭션을 마무리하고 세션을 닫습니다."""
        raise NotImplementedError


class AbstractPlugin(abc.ABC):
    """웹 프레임워크의 요청 생명주기에 연결되는 플러그인 인터페이스.

    호스트 프레임워크는 다음 순서로 훅을 호출해야 합니다.

    - 앱 기동시 한 번: :meth:`init`
    - 요청마다: :meth:`on_request_received` → (핸들러) → :meth:`on_request_finally`

    :meth:`on_request_finally` 는 예외가 발생한 경우에도 반드시 한 번 호출되어야 합니다.
    """

    @abc.abstractmethod
    def init(self, name: str, properties: Mapping[str, Any]) -> None:
        """앱 설정으로부터 플러그인을 초기화합니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def on_request_received(
        self, ctx: Optional[RequestContext] = None
    ) -> RequestContext:
        """요청이 들어왔을 때 호출됩니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def on_request_finally(
        self,
        ctx: Optional[RequestContext] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """요청 처리가 끝났을 때 (에러 여부와 상관없이) 호출됩니다."""
        raise NotImplementedError
