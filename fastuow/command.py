"""Command line script for FastUoW.

현재 경로의 ``setup.cfg`` ``[fastuow]`` 섹션과 ``FASTUOW_<NAME>_*`` 환경변수에서
플러그인 설정을 읽습니다. ::

    [fastuow]
    name = shop
    module = shop.adapters.orm
    url = postgresql://localhost/shop
    persistence_unit = shop
"""
import importlib
import os
import sys
from argparse import ArgumentParser, Namespace, RawTextHelpFormatter
from pathlib import Path
from textwrap import dedent
from types import ModuleType
from typing import Mapping, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from fastuow.config import load_plugin_config
from fastuow.core import FastUoWError
from fastuow.logging import get_logger
from fastuow.orm import PERSISTENCE_UNITS, create_session_factory
from fastuow.uow import SqlAlchemyUnitOfWork
from fastuow.utils import Fore, bold, fg, status_mark

YELLOW, CYAN, RED, WHITE_EX = Fore.YELLOW, Fore.CYAN, Fore.RED, Fore.LIGHTWHITE_EX

logger = get_logger("fastuow.command")


class FastUoWCommand:
    def __init__(
        self, path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
    ):
        """Constructor.

        설정을 읽지 못하면 (예: 퍼시스턴스 유닛 누락) :class:`FastUoWInitError`
        가 발생합니다.
        """
        self.path = path or Path(os.path.abspath("."))
        self.setup_cfg, self.config = load_plugin_config(self.path, environ)

    def load_module(self) -> Optional[ModuleType]:
        """퍼시스턴스 유닛을 등록하는 모듈을 import 합니다."""
        if not self.setup_cfg.module:
            return None

        if str(self.path) not in sys.path:
            sys.path.insert(0, str(self.path))

        return importlib.import_module(self.setup_cfg.module)

    def info(self):
        """플러그인 설정 정보를 출력합니다."""
        self.load_module()
        unit = PERSISTENCE_UNITS.get(self.config.persistence_unit)
        db_url = self.config.get_db_url(unit.url if unit else None)

        dot = bold("-", YELLOW)
        print(f"💡 {bold('FastUoW Information')}")
        print(dot, fg("Name", CYAN), "  :", fg(self.setup_cfg.name, WHITE_EX))
        print(dot, fg("Unit", CYAN), "  :", fg(self.config.persistence_unit, WHITE_EX))
        print(dot, fg("Module", CYAN), ":", fg(self.setup_cfg.module or "-", WHITE_EX))
        print(
            dot,
            fg("URL", CYAN),
            "   :",
            fg(db_url.render_as_string(hide_password=True) if db_url else "-", WHITE_EX),
        )

    def check(self):
        """DB 접속을 확인합니다.

        세션 팩토리를 만들고 UnitOfWork 안에서 ``SELECT 1`` 을 실행합니다.
        트랜잭션은 항상 롤백됩니다.
        """
        self.load_module()
        factory = create_session_factory(self.config)
        try:
            with SqlAlchemyUnitOfWork(factory) as uow:
                uow.set_rollback_only()
                uow.session.execute(text("SELECT 1")).scalar_one()
        finally:
            factory.dispose()

        print(
            status_mark(True),
            f"{fg('persistence unit', CYAN)} {bold(self.config.persistence_unit, YELLOW)} is reachable.",
        )


class FastUoWCommandParser:
    """콘솔 커맨드 명령어 파서.

    실제 작업은 `FastUoWCommand` 객체에 위임합니다.
    """

    def __init__(self, path: Optional[Path] = None):
        """기본 생성자."""
        self.path = path
        self.parser = ArgumentParser(
            "uow",
            description=f"✨ {bold('FastUoW')} : {fg('command line utility', CYAN)}",
        )
        self._subparsers = self.parser.add_subparsers(dest="command")

        for handler in [FastUoWCommand.info, FastUoWCommand.check]:
            # 핸들러 함수의 주석을 커맨드라인 도움말로 변환하기 위한 작업입니다.
            doc = None
            if handler.__doc__:
                lines = handler.__doc__.splitlines()
                doc = lines[0] + "\n" + dedent("\n".join(lines[1:]))
            self._subparsers.add_parser(
                handler.__name__,
                description=doc,
                formatter_class=RawTextHelpFormatter,
            )

    def parse_args(self, args: Sequence[str]) -> int:
        """콘솔 명령어를 해석해서 적절한 작업을 수행합니다.

        Returns:
            프로세스 종료 코드.
        """
        if not args:
            self.parser.print_help()
            return 0

        ns: Namespace = self.parser.parse_args(args)
        try:
            cmd = FastUoWCommand(self.path)
            getattr(cmd, ns.command)()
        except FastUoWError as e:
            print(
                f"{bold('FastUoW ERROR:', RED)} {fg(e.message, YELLOW)}",
                file=sys.stderr,
            )
            return 1
        except SQLAlchemyError as e:
            logger.debug("database check failed", exc_info=True)
            print(
                status_mark(False),
                f"{bold('FastUoW ERROR:', RED)} {fg(str(e).splitlines()[0], YELLOW)}",
                file=sys.stderr,
            )
            return 2
        return 0


def console_main():
    parser = FastUoWCommandParser()
    sys.exit(parser.parse_args(sys.argv[1:]))


if __name__ == "__main__":
    console_main()
