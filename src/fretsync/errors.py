from __future__ import annotations
from typing import Optional


class FretsyncError(Exception):
    """fretsync 공통 베이스 예외"""


# ---------------- 코덱(텍스트 import) ----------------
class ConfigParseError(FretsyncError, ValueError):
    """export 텍스트를 설정 객체로 되돌리지 못했을 때"""


class LiteralNotFoundError(ConfigParseError):
    pass


class UnmatchedBraceError(ConfigParseError):
    pass


class NotAnObjectError(ConfigParseError):
    pass


class LiteralSyntaxError(ConfigParseError):
    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (offset {offset})"
        super().__init__(message)


# ---------------- 프리셋 ----------------
class UnknownPresetError(FretsyncError, KeyError):
    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind}: {name}")

    def __str__(self) -> str:
        # KeyError는 repr()로 감싸서 출력하므로 메시지를 그대로 돌려준다
        return self.args[0]


# ---------------- 레이아웃 ----------------
class GeometryDeferred(FretsyncError):
    """레이아웃이 아직 안정되지 않아 프렛 높이를 계산할 수 없음"""
