"""요청 단위 트랜잭션 플러그인.

앱 기동시 설정으로부터 세션 팩토리를 한 번 만들고, 요청마다 UnitOfWork 를 열어
요청이 끝나면 커밋 또는 롤백한 뒤 닫습니다.

Example: ::

    plugin = SqlAlchemyPlugin()
    plugin.init("shop", {
        "plugin.shop.config.url": "sqlite:///shop.db",
        "plugin.shop.config.persistenceUnit": "shop",
    })

    ctx = plugin.on_request_received()
    try:
        persist(Product("sku-1"))
    finally:
        plugin.on_request_finally(ctx)
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from fastuow import context
from fastuow.config import PluginConfig
from fastuow.context import RequestContext
from fastuow.core import AbstractPlugin, FastUoWError
from fastuow.logging import get_logger
from fastuow.orm import SessionFactory, create_session_factory
from fastuow.uow import SqlAlchemyUnitOfWork

logger = get_logger("fastuow.plugin")


class SqlAlchemyPlugin(AbstractPlugin):
    """SqlAlchemy 세션을 요청 생명주기에 연결하는 플러그인."""

    # 정적 접근자
    persist = staticmethod(context.persist)
    get_session = staticmethod(context.get_session)
    get_transaction = staticmethod(context.get_transaction)
    set_rollback_only = staticmethod(context.set_rollback_only)
    current_uow = staticmethod(context.current_uow)

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.name: Optional[str] = None
        self.config: Optional[PluginConfig] = None
        self.session_factory = session_factory

    def __repr__(self) -> str:
        return f"SqlAlchemyPlugin[{self.name}]"

    @property
    def initialized(self) -> bool:
        return self.session_factory is not None

    def init(self, name: str, properties: Mapping[str, Any]) -> None:
        """앱이 초기화될 때 세션 팩토리를 만듭니다.

        Args:
            name: 플러그인 이름. 설정 키 ``plugin.<name>.config.*`` 에 사용됩니다.
            properties: 평평한 key-value 설정.

        Raises:
            FastUoWInitError: 퍼시스턴스 유닛이 지정되지 않았을 때.
        """
        self.name = name
        self.init_config(PluginConfig.from_properties(name, properties))

    def init_config(self, config: PluginConfig) -> None:
        """미리 만들어진 :class:`PluginConfig` 로 세션 팩토리를 만듭니다."""
        self.config = config
        self.session_factory = create_session_factory(config)

    def on_request_received(
        self, ctx: Optional[RequestContext] = None
    ) -> RequestContext:
        """요청이 들어오면 새 UnitOfWork 를 열어 현재 컨텍스트에 바인딩합니다.

        현재 컨텍스트에 이전 요청의 UnitOfWork 가 남아 있다면 재사용하지 않고
        롤백한 뒤 버립니다.
        """
        if self.session_factory is None:
            raise FastUoWError(f"{self!r} is not initialized")

        leaked = context.peek_context()
        if leaked is not None and leaked.uow is not None and leaked.uow.active:
            logger.warning("discarding leaked unit of work: %r", leaked.uow)
            leaked.uow.discard()
            leaked.uow = None

        ctx = ctx or RequestContext()
        uow = SqlAlchemyUnitOfWork(self.session_factory)
        uow.begin()
        ctx.uow = uow
        context.bind(ctx)
        logger.debug("unit of work started: %r", uow)
        return ctx

    def on_request_finally(
        self,
        ctx: Optional[RequestContext] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """요청이 끝나면 트랜잭션을 커밋(또는 롤백)하고 세션을 닫습니다.

        ``error`` 가 주어지면 (요청 처리중 예외) 트랜잭션은 롤백됩니다.
        커밋/롤백 중의 에러는 로그로 남기고 전파하지 않습니다.
        """
        ctx = ctx or context.peek_context()
        try:
            if ctx is None or ctx.uow is None:
                logger.debug("no unit of work to finish")
                return

            uow = ctx.uow
            if error is not None and uow.active:
                logger.debug("request failed, marking rollback-only: %r", error)
                uow.set_rollback_only()
            uow.finish()
            logger.debug("unit of work finished: committed=%s", uow.committed)
        finally:
            if ctx is not None:
                ctx.uow = None
            context.unbind()

    def close(self) -> None:
        """세션 팩토리의 커넥션 풀을 정리합니다."""
        if self.session_factory is not None:
            self.session_factory.dispose()
