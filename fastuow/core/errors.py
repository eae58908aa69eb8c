class FastUoWError(Exception):
    """``FastUoW`` 와 관련된 모든 에러의 기본 클래스."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    ...


class FastUoWInitError(FastUoWError):
    """플러그인 초기화 실패 에러.

    설정이 누락된 경우 발생하며, 앱 기동을 중단시킵니다.
    """

    ...
