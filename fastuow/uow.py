"""UnitOfWork 패턴 모듈.

요청 하나에서 사용되는 세션과 트랜잭션을 묶어서 관리합니다.
SqlAlchemy를 이용한 기본 구현체를 제공합니다.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from fastuow.core import AbstractSession, AbstractUnitOfWork, FastUoWError
from fastuow.logging import get_logger

logger = get_logger("fastuow.uow")


class Transaction:
    """세션의 트랜잭션 래퍼.

    SqlAlchemy 세션에는 없는 *rollback-only* 표시를 지원합니다. 표시된 트랜잭션은
    커밋될 수 없고 요청이 끝날 때 항상 롤백됩니다.

    표시는 롤백한 뒤에도 유지되므로, 같은 요청에서 이후에 추가된 작업도 커밋되지
    않습니다. 세션을 직접 커밋(`Session.commit`)하는 경우에도 막힙니다.
    """

    def __init__(self, session: AbstractSession):
        self.session = session
        self._rollback_only = False
        if isinstance(session, Session):
            event.listen(session, "before_commit", self._check_commit)

    def __repr__(self) -> str:
        return f"Transaction[active={self.is_active}, rollback_only={self._rollback_only}]"

    @property
    def is_active(self) -> bool:
        """트랜잭션이 시작되었거나 아직 flush 되지 않은 변경사항이 있으면 ``True``.

        핸들러가 중간에 직접 커밋한 뒤 추가한 객체도 요청이 끝날 때 커밋되어야 합니다.
        """
        session = self.session
        return session.in_transaction() or bool(
            session.new or session.dirty or session.deleted
        )

    @property
    def rollback_only(self) -> bool:
        return self._rollback_only

    def set_rollback_only(self) -> None:
        self._rollback_only = True

    def _check_commit(self, session: Session) -> None:
        if self._rollback_only:
            raise FastUoWError("transaction is marked rollback-only")

    def begin(self) -> None:
        self._rollback_only = False
        self.session.begin()

    def commit(self) -> None:
        if self._rollback_only:
            raise FastUoWError("transaction is marked rollback-only")
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """``SqlAlchemy`` ORM을 이용한 UnitOfWork 패턴 구현입니다.

    Example: ::

        with SqlAlchemyUnitOfWork(session_factory) as uow:
            uow.persist(Book("Dune"))
        # 예외 없이 블록을 빠져나오면 커밋됩니다.
    """

    def __init__(self, get_session: Callable[[], AbstractSession]) -> None:
        self.get_session = get_session
        self.session: Optional[Any] = None
        self.transaction: Optional[Transaction] = None
        self.committed = False

    def __repr__(self) -> str:
        return f"SqlAlchemyUnitOfWork[{self.transaction!r}]"

    @property
    def active(self) -> bool:
        """세션이 열려 있는지 여부."""
        return self.session is not None

    def begin(self) -> None:
        """세션을 할당하고 트랜잭션을 시작합니다."""
        if self.session is not None:
            raise FastUoWError("unit of work already begun")

        self.session = self.get_session()
        self.transaction = Transaction(self.session)
        self.transaction.begin()
        self.committed = False

    def _require_transaction(self) -> Transaction:
        if self.transaction is None:
            raise FastUoWError("unit of work is not active")
        return self.transaction

    def persist(self, entity: Any) -> None:
        """엔티티를 세션에 추가합니다."""
        self._require_transaction().session.add(entity)

    def _commit(self) -> None:
        """세션을 커밋합니다."""
        self._require_transaction().commit()
        self.committed = True

    def rollback(self) -> None:
        """세션을 롤백합니다."""
        self._require_transaction().rollback()

    def set_rollback_only(self) -> None:
        self._require_transaction().set_rollback_only()

    def finish(self) -> None:
        """요청이 끝날 때 트랜잭션을 마무리하고 세션을 닫습니다.

        활성 트랜잭션은 rollback-only 로 표시되었으면 롤백하고, 아니면 커밋합니다.
        이 과정의 에러는 로그로 남기고 전파하지 않으며, 세션은 항상 닫힙니다.
        """
        if self.transaction is None:
            return

        try:
            if self.transaction.is_active:
                if self.transaction.rollback_only:
                    logger.debug("rolling back rollback-only transaction")
                    self.transaction.rollback()
                else:
                    self.transaction.commit()
                    self.committed = True
        except Exception:
            logger.exception("failed to end transaction of %r", self)
        finally:
            self.close()

    def discard(self) -> None:
        """정리되지 않은 세션을 롤백하고 버립니다. 절대 커밋하지 않습니다."""
        if self.transaction is None:
            return

        try:
            if self.transaction.is_active:
                self.transaction.rollback()
        except Exception:
            logger.exception("failed to roll back discarded %r", self)
        finally:
            self.close()

    def close(self) -> None:
        """세션을 close합니다."""
        session, self.session, self.transaction = self.session, None, None
        if session is not None:
            session.close()
