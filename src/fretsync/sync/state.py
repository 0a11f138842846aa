from __future__ import annotations
import enum
from contextlib import contextmanager
from typing import Iterator, Optional


class SyncMode(enum.Enum):
    IDLE = "idle"
    USER_EDITING = "user_editing"
    PROGRAMMATIC_WRITE = "programmatic_write"


class SyncState:
    """
    인스턴스당 하나. 패널 <-> 다이어그램 쓰기 경로를 한 번에 하나로 제한한다.

      IDLE ──begin_edit(key)──▶ USER_EDITING(key)   : 그 필드만 tick 쓰기 금지
      IDLE ──begin_write()────▶ PROGRAMMATIC_WRITE  : tick 전체 건너뜀
      각 상태는 가드 시간이 지나면 release_due() 에서 IDLE 로.
      hold(): 동기 쓰기 구간. 끝나면 바로 이전 상태로 돌아간다.
    """

    def __init__(self) -> None:
        self._writing = False
        self._write_until: Optional[float] = None
        self._holds = 0
        self._editing_key: Optional[str] = None
        self._edit_until: Optional[float] = None

    # ---- 읽기 전용 뷰 (isSyncing / userEditing / editingKey) ----
    @property
    def mode(self) -> SyncMode:
        if self.is_syncing:
            return SyncMode.PROGRAMMATIC_WRITE
        if self._editing_key is not None:
            return SyncMode.USER_EDITING
        return SyncMode.IDLE

    @property
    def is_syncing(self) -> bool:
        return self._writing or self._holds > 0

    @property
    def user_editing(self) -> bool:
        return self._editing_key is not None

    @property
    def editing_key(self) -> Optional[str]:
        return self._editing_key

    # ---- 전이 ----
    def begin_edit(self, key: str, now: float, guard: float) -> None:
        self._editing_key = key
        self._edit_until = now + guard

    def begin_write(self, now: float, guard: float) -> None:
        self._writing = True
        self._write_until = now + guard

    def release_due(self, now: float) -> bool:
        """가드 시간이 지난 상태를 풀고, 하나라도 풀었으면 True"""
        released = False
        if self._write_until is not None and now >= self._write_until:
            self._writing = False
            self._write_until = None
            released = True
        if self._edit_until is not None and now >= self._edit_until:
            self._editing_key = None
            self._edit_until = None
            released = True
        return released

    @contextmanager
    def hold(self) -> Iterator[None]:
        self._holds += 1
        try:
            yield
        finally:
            self._holds -= 1

    def reset(self) -> None:
        self._writing = False
        self._write_until = None
        self._holds = 0
        self._editing_key = None
        self._edit_until = None
