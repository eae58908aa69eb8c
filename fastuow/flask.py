"""Flask 앱에 요청 단위 트랜잭션을 연결합니다."""
from __future__ import annotations

from typing import Optional

from flask import Flask, g, request

from fastuow.context import RequestContext
from fastuow.plugin import SqlAlchemyPlugin
from fastuow.uow import SqlAlchemyUnitOfWork


def init_app(
    app: Flask, plugin: Optional[SqlAlchemyPlugin] = None, name: str = "sqlalchemy"
) -> SqlAlchemyPlugin:
    """Flask 앱을 초기화 합니다.

    플러그인이 초기화되지 않았다면 ``app.config`` 의 ``plugin.<name>.config.*``
    설정으로 초기화하고, ``before_request`` / ``teardown_request`` 훅을 등록합니다.
    처리되지 않은 예외로 끝난 요청의 트랜잭션은 롤백됩니다.
    """
    plugin = plugin or SqlAlchemyPlugin()
    if not plugin.initialized:
        plugin.init(name, app.config)

    @app.before_request
    def begin_unit_of_work() -> None:
        # pylint: disable=protected-access
        ctx = RequestContext(request=request._get_current_object())  # type: ignore
        g.uow_context = plugin.on_request_received(ctx)

    @app.teardown_request
    def finish_unit_of_work(exc: Optional[BaseException] = None) -> None:
        plugin.on_request_finally(g.pop("uow_context", None), exc)

    app.extensions["fastuow"] = plugin
    return plugin


def get_uow() -> SqlAlchemyUnitOfWork:
    """현재 Flask 요청의 UnitOfWork 를 리턴합니다."""
    return g.uow_context.require_uow()
