# pylint: disable=redefined-outer-name
"""pytest 에서 사용될 전역 Fixture들을 정의합니다."""
from __future__ import annotations

from typing import Generator

import pytest

from fastuow import context
from fastuow.orm import SessionFactory
from fastuow.plugin import SqlAlchemyPlugin
from fastuow.test.unit import FakeSessionFactory
from tests.app import models  # noqa: registers the "library" persistence unit

LIBRARY_PROPERTIES = {
    "plugin.library.config.url": "sqlite://",
    "plugin.library.config.persistenceUnit": "library",
    "plugin.library.config.create_all": "true",
}


@pytest.fixture(autouse=True)
def unbound_context() -> Generator[None, None, None]:
    """테스트 사이에 요청 컨텍스트가 남지 않도록 보장합니다."""
    context.unbind()
    yield
    context.unbind()


@pytest.fixture
def properties() -> dict[str, str]:
    return dict(LIBRARY_PROPERTIES)


@pytest.fixture
def plugin(properties: dict[str, str]) -> Generator[SqlAlchemyPlugin, None, None]:
    """인메모리 SQLite 를 사용하는 초기화된 플러그인.

    호출시마다 새 DB가 만들어집니다.
    """
    plugin = SqlAlchemyPlugin()
    plugin.init("library", properties)

    yield plugin

    plugin.close()


@pytest.fixture
def session_factory(plugin: SqlAlchemyPlugin) -> SessionFactory:
    assert plugin.session_factory is not None
    return plugin.session_factory


@pytest.fixture
def fake_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def fake_plugin(fake_factory: FakeSessionFactory) -> SqlAlchemyPlugin:
    """DB 없이 훅을 테스트하기 위한 플러그인."""
    return SqlAlchemyPlugin(fake_factory)  # type: ignore
