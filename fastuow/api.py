"""FastAPI 앱에 요청 단위 트랜잭션을 연결합니다.

핸들러는 정적 접근자(:func:`fastuow.persist` 등)를 쓰거나, 다음처럼 의존성 주입으로
UnitOfWork 를 명시적으로 전달받을 수 있습니다. ::

    @app.post("/books")
    def add_book(title: str, uow: SqlAlchemyUnitOfWork = Depends(get_uow)):
        uow.persist(Book(title))

미들웨어는 응답이 시작되면 트랜잭션을 마무리하고 세션을 닫습니다. 따라서
``StreamingResponse`` 의 본문 생성기에서는 요청의 세션을 사용할 수 없습니다.
스트리밍할 데이터는 핸들러 안에서 미리 읽어 두어야 합니다.
"""
from typing import Any, Awaitable, Callable, Mapping, Optional

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from fastuow import context
from fastuow.config import PluginConfig
from fastuow.context import RequestContext
from fastuow.core import FastUoWError
from fastuow.plugin import SqlAlchemyPlugin
from fastuow.uow import SqlAlchemyUnitOfWork

CallNext = Callable[[Request], Awaitable[Response]]


def init_app(
    app: FastAPI,
    plugin: Optional[SqlAlchemyPlugin] = None,
    name: str = "sqlalchemy",
    properties: Optional[Mapping[str, Any]] = None,
) -> SqlAlchemyPlugin:
    """FastAPI 앱을 초기화 합니다.

    플러그인이 초기화되지 않았다면 ``properties`` (없으면 ``FASTUOW_<NAME>_*``
    환경변수)로 초기화하고, 요청마다 훅을 호출하는 HTTP 미들웨어를 등록합니다.
    """
    plugin = plugin or SqlAlchemyPlugin()
    if not plugin.initialized:
        if properties is None:
            plugin.name = name
            plugin.init_config(PluginConfig.from_env(name))
        else:
            plugin.init(name, properties)

    app.middleware("http")(unit_of_work_middleware(plugin))
    app.state.fastuow = plugin
    return plugin


def unit_of_work_middleware(
    plugin: SqlAlchemyPlugin,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """요청마다 플러그인 훅을 호출하는 HTTP 미들웨어를 만듭니다.

    ``call_next`` 가 예외로 끝나면 (취소된 요청 포함) 트랜잭션은 롤백됩니다.
    """

    async def dispatch(request: Request, call_next: CallNext) -> Response:
        ctx = plugin.on_request_received(RequestContext(request=request))
        request.state.uow_context = ctx
        error: Optional[BaseException] = None
        try:
            return await call_next(request)
        except BaseException as e:  # 클라이언트 연결이 끊겨 취소된 요청 포함
            error = e
            raise
        finally:
            if error is None or isinstance(error, Exception):
                # 커밋은 블로킹 I/O 이므로 스레드풀에서 실행합니다.
                await run_in_threadpool(plugin.on_request_finally, ctx, error)
            else:
                # 취소된 태스크에서는 await 할 수 없으므로 바로 롤백합니다.
                plugin.on_request_finally(ctx, error)
            context.unbind()

    return dispatch


def get_request_context(request: Request) -> RequestContext:
    ctx = getattr(request.state, "uow_context", None)
    if ctx is None:
        raise FastUoWError("unit of work middleware is not installed")
    return ctx


def get_uow(request: Request) -> SqlAlchemyUnitOfWork:
    """현재 요청의 UnitOfWork 를 리턴하는 의존성."""
    return get_request_context(request).require_uow()
