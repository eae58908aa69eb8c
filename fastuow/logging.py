"""패키지 로거 설정.

모든 로거는 ``fastuow`` 네임스페이스 아래에 만들어지며, 핸들러는 최상위
``fastuow`` 로거에 한 번만 붙습니다. 로그 레벨은 ``FASTUOW_LOG_LEVEL``
환경변수로 바꿀 수 있습니다.
"""
import logging
import os
from typing import Union

from uvicorn.logging import DefaultFormatter

ROOT_LOGGER = "fastuow"
LOG_FORMAT = "%(levelprefix)s [%(name)s] %(message)s"


def get_logger(name: str, log_level: Union[int, str, None] = None) -> logging.Logger:
    """``fastuow.<name>`` 로거를 리턴합니다."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"

    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        root.setLevel(log_level or os.environ.get("FASTUOW_LOG_LEVEL", "INFO").upper())
        ch = logging.StreamHandler()
        ch.setFormatter(DefaultFormatter(fmt=LOG_FORMAT))
        root.addHandler(ch)

    return logging.getLogger(name)
