import os

from colorama import Fore, Style
from colorama import init as init_colors

init_colors()  # For Windows environment


def fg(text, color=Fore.WHITE):
    """텍스트를 지정된 ANSI 컬러로 출력합니다."""
    return f"{color}{text}{Fore.RESET}"


def bold(text, color=Fore.WHITE):
    """텍스트를 지정된 ANSI 컬러와 밝기 효과를 주어 출력합니다."""
    return f"{Style.BRIGHT}{color}{text}{Style.RESET_ALL}"


def status_mark(ok: bool) -> str:
    """성공/실패 표시 문자. Windows 콘솔에서는 ASCII 문자를 사용합니다."""
    if ok:
        return bold("✓" if os.name != "nt" else "v", Fore.GREEN)
    return bold("✗" if os.name != "nt" else "x", Fore.RED)
