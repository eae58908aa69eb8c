"""플러그인 환경 설정.

설정은 ``plugin.<name>.config.<key>`` 형식의 평평한(flat) key-value 로 주어집니다.
Flask 의 ``app.config``, ``setup.cfg`` 의 ``[fastuow]`` 섹션, 환경변수
(``FASTUOW_<NAME>_<KEY>``) 모두 같은 키를 사용합니다.

사용 가능한 키:

    - ``driver``: SqlAlchemy 드라이버 이름 (예: ``postgresql+psycopg2``)
    - ``url``: SqlAlchemy DB URL
    - ``user``, ``password``: URL 의 인증 정보를 덮어씁니다.
    - ``persistenceUnit``: 퍼시스턴스 유닛 이름 (필수)
    - ``echo``, ``create_all``: 엔진 옵션
"""
from __future__ import annotations

import os
from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Type

from sqlalchemy.engine import URL, make_url
from sqlalchemy.pool import Pool, StaticPool

from fastuow.core import FastUoWInitError

TRUE_VALUES = {"1", "true", "yes", "on"}


def normalize_key(key: str) -> str:
    """``persistenceUnit``, ``persistence_unit``, ``persistence-unit`` 를 같은 키로 취급합니다.

    ``ConfigParser`` 는 키를 소문자로 바꾸기 때문에 대소문자도 무시합니다.
    """
    return key.replace("-", "").replace("_", "").lower()


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def collect_properties(prefix: str, properties: Mapping[Any, Any]) -> dict[str, Any]:
    """``prefix`` 로 시작하는 키만 골라 정규화된 키의 dict 로 리턴합니다."""
    values: dict[str, Any] = {}
    prefix = prefix.lower()
    for key, value in properties.items():
        if not isinstance(key, str) or not key.lower().startswith(prefix):
            continue
        values[normalize_key(key[len(prefix) :])] = value
    return values


def _optional(values: Mapping[str, Any], key: str) -> Optional[str]:
    value = values.get(key)
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class PluginConfig:
    """플러그인 설정.

    한 번 만들어지면 변경할 수 없습니다.
    """

    persistence_unit: str
    driver: Optional[str] = None
    url: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    echo: bool = False
    create_all: bool = False

    @staticmethod
    def from_dict(values: Mapping[str, Any]) -> PluginConfig:
        """접두어가 제거된 key-value 로부터 설정을 만듭니다.

        Raises:
            FastUoWInitError: 퍼시스턴스 유닛 이름이 없거나 비어 있을 때.
        """
        values = {normalize_key(k): v for k, v in values.items()}
        unit = _optional(values, "persistenceunit")
        if not unit:
            raise FastUoWInitError("Persistence Unit not specified in plugin config")

        return PluginConfig(
            persistence_unit=unit,
            driver=_optional(values, "driver"),
            url=_optional(values, "url"),
            user=_optional(values, "user"),
            password=_optional(values, "password"),
            echo=to_bool(values.get("echo", False)),
            create_all=to_bool(values.get("createall", False)),
        )

    @staticmethod
    def from_properties(name: str, properties: Mapping[Any, Any]) -> PluginConfig:
        """``plugin.<name>.config.<key>`` 형식의 설정으로부터 만듭니다."""
        return PluginConfig.from_dict(
            collect_properties(f"plugin.{name}.config.", properties)
        )

    @staticmethod
    def from_env(name: str, environ: Optional[Mapping[str, str]] = None) -> PluginConfig:
        """``FASTUOW_<NAME>_<KEY>`` 환경변수로부터 만듭니다.

        Example: ::

            FASTUOW_SHOP_URL=postgresql://localhost/shop
            FASTUOW_SHOP_PERSISTENCE_UNIT=shop
        """
        environ = os.environ if environ is None else environ
        return PluginConfig.from_dict(collect_properties(env_prefix(name), environ))

    def get_db_url(self, default: Optional[str] = None) -> Optional[URL]:
        """SqlAlchemy 에서 사용 가능한 형식의 DB URL을 리턴합니다.

        ``url`` 이 없으면 ``default`` (퍼시스턴스 유닛의 기본 URL)를 사용하고,
        ``driver``, ``user``, ``password`` 가 주어지면 URL 의 해당 부분을 덮어씁니다.
        """
        url = self.url or default
        if not url:
            return None

        db_url = make_url(url)
        if self.driver:
            db_url = db_url.set(drivername=self.driver)
        if self.user:
            db_url = db_url.set(username=self.user)
        if self.password:
            db_url = db_url.set(password=self.password)
        return db_url

    def get_db_connect_args(self, db_url: URL) -> dict[str, Any]:
        """Get db connection arguments for SQLAlchemy's engine creation.

        요청마다 다른 스레드에서 세션이 사용될 수 있으므로 SQLite 는
        ``check_same_thread`` 를 끕니다.
        """
        if db_url.get_backend_name() == "sqlite":
            return {"check_same_thread": False}
        return {}

    def get_db_poolclass(self, db_url: URL) -> Optional[Type[Pool]]:
        """Get db poolclass argument for SQLAlchemy's engine creation.

        인메모리 SQLite 는 모든 세션이 같은 DB를 보도록 ``StaticPool`` 을 사용합니다.
        나머지는 ``None`` (SqlAlchemy 기본 풀)을 리턴합니다.
        """
        if db_url.get_backend_name() == "sqlite" and db_url.database in (
            None,
            "",
            ":memory:",
        ):
            return StaticPool
        return None


def env_prefix(name: str) -> str:
    return f"FASTUOW_{name.upper()}_"


@dataclass
class FastUoWSetupConfig:
    """``setup.cfg`` 의 ``[fastuow]`` 섹션."""

    name: str = "sqlalchemy"
    module: Optional[str] = None
    """퍼시스턴스 유닛을 등록하는 모듈 이름. ``uow check`` 에서 import 합니다."""
    properties: dict[str, str] = field(default_factory=dict)


def load_setupcfg(path: Path = Path(".")) -> Optional[FastUoWSetupConfig]:
    """``setup.cfg`` 파일의 ``[fastuow]`` 섹션을 읽습니다.

    ``name``, ``module`` 을 제외한 나머지 키는 접두어 없이 플러그인 설정 키로 취급합니다.
    """
    cfg_path = path / "setup.cfg"
    if not cfg_path.exists():
        return None

    parser = ConfigParser()
    parser.read(cfg_path, encoding="utf8")
    if "fastuow" not in parser:
        return None

    section = dict(parser["fastuow"])
    return FastUoWSetupConfig(
        name=section.pop("name", "sqlalchemy"),
        module=section.pop("module", None),
        properties=section,
    )


def load_plugin_config(
    path: Path = Path("."), environ: Optional[Mapping[str, str]] = None
) -> tuple[FastUoWSetupConfig, PluginConfig]:
    """``setup.cfg`` 설정 위에 환경변수 설정을 덮어써서 최종 설정을 만듭니다."""
    environ = os.environ if environ is None else environ
    setup_cfg = load_setupcfg(path) or FastUoWSetupConfig()

    values = {normalize_key(k): v for k, v in setup_cfg.properties.items()}
    values.update(collect_properties(env_prefix(setup_cfg.name), environ))

    return setup_cfg, PluginConfig.from_dict(values)
