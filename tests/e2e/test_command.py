"""``uow`` 콘솔 명령어를 테스트합니다.

$ uow info
$ uow check
"""
from pathlib import Path
from textwrap import dedent

import pytest

from fastuow.command import FastUoWCommand, FastUoWCommandParser
from fastuow.core import FastUoWInitError


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """``setup.cfg`` 에 ``[fastuow]`` 섹션이 있는 임시 프로젝트 경로."""
    for key in ("FASTUOW_LIBRARY_URL", "FASTUOW_LIBRARY_PERSISTENCE_UNIT"):
        monkeypatch.delenv(key, raising=False)

    (tmp_path / "setup.cfg").write_text(
        dedent(
            f"""
            [fastuow]
            name = library
            module = tests.app.models
            url = sqlite:///{tmp_path / 'library.db'}
            persistence_unit = library
            """
        )
    )
    return tmp_path


def test_command_reads_setupcfg(project: Path):
    cmd = FastUoWCommand(project, environ={})

    assert cmd.setup_cfg.name == "library"
    assert cmd.config.persistence_unit == "library"


def test_command_without_persistence_unit(tmp_path: Path):
    with pytest.raises(FastUoWInitError):
        FastUoWCommand(tmp_path, environ={})


def test_info_masks_password(project: Path, capsys, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FASTUOW_LIBRARY_URL", "postgresql://scott:tiger@db/library")

    assert FastUoWCommandParser(project).parse_args(["info"]) == 0

    out = capsys.readouterr().out
    assert "scott" in out
    assert "tiger" not in out


def test_check(project: Path, capsys):
    assert FastUoWCommandParser(project).parse_args(["check"]) == 0
    assert "reachable" in capsys.readouterr().out


def test_check_unreachable_db(project: Path, capsys, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(
        "FASTUOW_LIBRARY_URL", f"sqlite:///{project / 'missing' / 'library.db'}"
    )

    assert FastUoWCommandParser(project).parse_args(["check"]) == 2
    assert "FastUoW ERROR" in capsys.readouterr().err


def test_error_is_printed_without_traceback(tmp_path: Path, capsys):
    assert FastUoWCommandParser(tmp_path).parse_args(["info"]) == 1
    assert "Persistence Unit not specified" in capsys.readouterr().err


def test_no_args_prints_help(capsys):
    assert FastUoWCommandParser().parse_args([]) == 0
    assert "uow" in capsys.readouterr().out
