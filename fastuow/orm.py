"""ORM 어댑터 모듈.

퍼시스턴스 유닛(Persistence Unit) 등록과 SqlAlchemy 세션 팩토리 생성을 담당합니다.

퍼시스턴스 유닛은 이름이 붙은 매퍼 초기화 함수들의 묶음입니다. 앱은 다음처럼
유닛을 등록하고, 플러그인 설정의 ``persistenceUnit`` 키로 이 이름을 지정합니다. ::

    @persistence_unit("shop")
    def init_mappers(mapper_registry: registry):
        mapper_registry.map_imperatively(Product, product_table)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Type, Union

from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import clear_mappers as _clear_mappers
from sqlalchemy.orm import registry, sessionmaker
from sqlalchemy.pool import Pool

from fastuow.config import PluginConfig
from fastuow.core import FastUoWError, FastUoWInitError
from fastuow.logging import get_logger

MapperHook = Callable[[registry], Any]
"""매퍼 초기화 함수 타입."""
SessionMaker = Callable[[], Session]
"""Session 팩토리 타입."""

logger = get_logger("fastuow.orm")


@dataclass
class PersistenceUnit:
    """이름이 붙은 매핑 그룹과 기본 데이터 소스."""

    name: str
    init_hooks: list[MapperHook] = field(default_factory=list)
    metadata: Optional[MetaData] = None
    """Declarative 모델을 사용한다면 ``Base.metadata`` 를 지정합니다."""
    url: Optional[str] = None
    """플러그인 설정에 ``url`` 이 없을 때 사용할 기본 DB URL."""
    mapper_registry: Optional[registry] = None

    @property
    def started(self) -> bool:
        return self.mapper_registry is not None


PERSISTENCE_UNITS: dict[str, PersistenceUnit] = {}


def register_persistence_unit(
    name: str,
    init_hooks: Optional[list[MapperHook]] = None,
    metadata: Optional[MetaData] = None,
    url: Optional[str] = None,
) -> PersistenceUnit:
    """퍼시스턴스 유닛을 등록합니다.

    같은 이름으로 여러번 호출하면 매퍼 초기화 함수가 누적됩니다.
    """
    unit = PERSISTENCE_UNITS.get(name)
    if not unit:
        unit = PERSISTENCE_UNITS[name] = PersistenceUnit(name)

    if init_hooks:
        if unit.started:
            raise FastUoWError(f"mappers already started for persistence unit: {name}")
        unit.init_hooks.extend(init_hooks)
    if metadata is not None:
        unit.metadata = metadata
    if url:
        unit.url = url

    return unit


def persistence_unit(name: str, url: Optional[str] = None) -> Callable[[MapperHook], MapperHook]:
    """매퍼 초기화 함수를 퍼시스턴스 유닛에 등록하는 데코레이터."""

    def decorator(hook: MapperHook) -> MapperHook:
        register_persistence_unit(name, init_hooks=[hook], url=url)
        return hook

    return decorator


def get_persistence_unit(name: str) -> PersistenceUnit:
    if name not in PERSISTENCE_UNITS:
        raise FastUoWInitError(f"unknown persistence unit: {name}")
    return PERSISTENCE_UNITS[name]


def start_mappers(unit: PersistenceUnit, use_exist: bool = True) -> MetaData:
    """퍼시스턴스 유닛의 도메인 객체들을 SqlAlchemy ORM 매퍼에 등록합니다.

    매퍼는 프로세스에서 한 번만 등록되므로 이미 시작된 유닛은 기존 ``MetaData`` 를
    그대로 리턴합니다.
    """
    if use_exist and unit.mapper_registry:
        return unit.mapper_registry.metadata

    unit.mapper_registry = registry(metadata=unit.metadata)
    for hook in unit.init_hooks:
        hook(unit.mapper_registry)

    return unit.mapper_registry.metadata


def clear_mappers() -> None:
    """ORM 매핑을 초기화 합니다."""
    _clear_mappers()
    for unit in PERSISTENCE_UNITS.values():
        unit.mapper_registry = None


def init_engine(
    meta: MetaData,
    url: Union[str, URL],
    connect_args: Optional[dict[str, Any]] = None,
    poolclass: Optional[Type[Pool]] = None,
    echo: bool = False,
    isolation_level: Optional[str] = None,
    create_all: bool = False,
    drop_all: bool = False,
) -> Engine:
    """ORM Engine을 초기화 합니다.

    Args:
        meta: 테이블 정의가 담긴 ``MetaData``.
        url: SqlAlchemy DB URL.
        create_all: ``True`` 면 누락된 테이블을 생성합니다.
        drop_all: ``True`` 면 테이블을 모두 지우고 다시 생성합니다.
    """
    kwargs: dict[str, Any] = {}
    if isolation_level:
        kwargs["isolation_level"] = isolation_level

    engine = create_engine(
        url,
        connect_args=connect_args or {},
        poolclass=poolclass,
        echo=echo,
        **kwargs,
    )

    if drop_all:
        meta.drop_all(engine)

    if create_all or drop_all:
        meta.create_all(engine)

    return engine


@dataclass(frozen=True)
class SessionFactory:
    """프로세스 전체에서 공유되는 세션 팩토리.

    앱 기동시 한 번 만들어지며 이후 변경되지 않습니다. 커넥션 풀은 ``engine`` 이
    소유합니다.
    """

    unit_name: str
    engine: Engine
    maker: sessionmaker = field(repr=False)

    def __call__(self) -> Session:
        return self.maker()

    def dispose(self) -> None:
        """커넥션 풀을 정리합니다."""
        self.engine.dispose()


def create_session_factory(config: PluginConfig) -> SessionFactory:
    """플러그인 설정으로 :class:`SessionFactory` 를 만듭니다.

    Raises:
        FastUoWInitError: 퍼시스턴스 유닛이 등록되지 않았거나 DB URL 이 없을 때.
    """
    unit = get_persistence_unit(config.persistence_unit)
    metadata = start_mappers(unit)

    db_url = config.get_db_url(unit.url)
    if db_url is None:
        raise FastUoWInitError(f"DB url not specified for persistence unit: {unit.name}")

    engine = init_engine(
        metadata,
        db_url,
        connect_args=config.get_db_connect_args(db_url),
        poolclass=config.get_db_poolclass(db_url),
        echo=config.echo,
        create_all=config.create_all,
    )
    logger.info(
        "session factory created for %r: %s",
        unit.name,
        db_url.render_as_string(hide_password=True),
    )
    return SessionFactory(unit.name, engine, sessionmaker(engine))
