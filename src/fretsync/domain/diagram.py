from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .notes import interval_label, note_at_fret

log = logging.getLogger(__name__)

MAX_FRET = 24


@dataclass
class Marker:
    active: bool = False
    note: Optional[str] = None
    finger: Optional[str] = None      # 사용자가 붙인 손가락 번호(문자열)
    text: str = ""


@dataclass
class Cell:
    string: int
    dot: Marker = field(default_factory=Marker)
    muted: Marker = field(default_factory=Marker)     # 0프렛에서만 의미 있음
    interval: Optional[str] = None
    interval_visible: bool = False


@dataclass
class Row:
    row_id: str
    cells: List[Cell]
    visible: bool = True
    height: Optional[float] = None


@dataclass(frozen=True)
class DotState:
    """재생성 전후로 옮겨 담는 마크 하나"""
    string: int
    fret: int
    muted: bool = False
    finger: Optional[str] = None


class Diagram:
    """
    렌더 타깃 하나의 '활성 마크' 저장소 (유일한 원본).
    - 행: header + fret row 0..MAX_FRET
    - 열: 줄 번호 1..num_strings
    - 행 id 형식: <target>_fret_row_<n>
    """

    def __init__(self, target_id: str, num_strings: int = 6, string_type: str = "single") -> None:
        self.target_id = target_id
        self.num_strings = 0
        self.string_type = string_type
        self.rows: List[Row] = []
        self._row_re = re.compile(rf"^{re.escape(target_id)}_fret_row_(\d+)$")
        self._tuning: Dict[int, str] = {}
        self.dot_text_mode = "note"
        self.start_fret = 1
        self.num_frets = 4
        self.regenerate(num_strings, string_type)

    # ---------------- 구조 ----------------
    def row_id(self, fret: int) -> str:
        return f"{self.target_id}_fret_row_{fret}"

    def fret_of(self, row_id: str) -> Optional[int]:
        """행 id에서 프렛 번호를 읽는다. 애매하면 None"""
        m = self._row_re.match(row_id or "")
        if not m:
            return None
        fret = int(m.group(1))
        return fret if 0 <= fret <= MAX_FRET else None

    def regenerate(self, num_strings: int, string_type: str = "single") -> None:
        """모든 행/열을 새로 만든다. 마크는 사라지므로 capture/restore로 감쌀 것"""
        self.num_strings = int(num_strings)
        self.string_type = string_type
        self.rows = [
            Row(self.row_id(f), [Cell(s) for s in range(1, self.num_strings + 1)])
            for f in range(MAX_FRET + 1)
        ]
        self._apply_window()
        log.debug("%s regenerated: %d strings (%s)", self.target_id, self.num_strings, string_type)

    def row(self, fret: int) -> Optional[Row]:
        if 0 <= fret < len(self.rows):
            return self.rows[fret]
        return None

    def cell(self, string: int, fret: int) -> Optional[Cell]:
        r = self.row(fret)
        if r is None or not (1 <= string <= self.num_strings):
            return None
        return r.cells[string - 1]

    # ---------------- 표시 구간 ----------------
    def set_window(self, start_fret: int, num_frets: int) -> None:
        self.start_fret = max(1, int(start_fret))
        self.num_frets = max(1, int(num_frets))
        self._apply_window()

    def _apply_window(self) -> None:
        last = min(MAX_FRET, self.start_fret + self.num_frets - 1)
        for f, r in enumerate(self.rows):
            r.visible = f == 0 or self.start_fret <= f <= last

    def visible_frets(self) -> List[int]:
        return [f for f, r in enumerate(self.rows) if r.visible]

    def fret_indicators(self, mode: str) -> List[int]:
        frets = [f for f in self.visible_frets() if f > 0]
        if mode == "all":
            return frets
        if mode == "first-fret" and frets:
            return frets[:1]
        if mode == "first-fret-cond" and frets and frets[0] != 1:
            return frets[:1]
        return []

    def string_widths(self, thickest: float, thinnest: float) -> Dict[int, float]:
        """1번줄(가장 낮은 음)이 가장 두껍고 마지막 줄이 가장 얇다"""
        n = self.num_strings
        if n <= 1:
            return {1: float(thickest)}
        step = (float(thickest) - float(thinnest)) / (n - 1)
        return {s: float(thickest) - step * (s - 1) for s in range(1, n + 1)}

    # ---------------- 라벨 ----------------
    def set_tuning(self, tuning: Mapping[int, str]) -> None:
        self._tuning = dict(tuning)
        for f, r in enumerate(self.rows):
            for c in r.cells:
                if c.dot.active:
                    c.dot.note = note_at_fret(self._tuning.get(c.string), f)
        self.refresh_text()

    def open_note(self, string: int) -> Optional[str]:
        return self._tuning.get(string)

    def set_dot_text_mode(self, mode: str) -> None:
        self.dot_text_mode = mode
        self.refresh_text()

    def _text_for(self, m: Marker) -> str:
        if self.dot_text_mode == "finger":
            return m.finger if m.finger and m.finger != "0" else ""
        return m.note or ""

    def refresh_text(self) -> None:
        for r in self.rows:
            for c in r.cells:
                c.dot.text = self._text_for(c.dot) if c.dot.active else ""

    def update_intervals(self, root: Optional[str]) -> None:
        for f, r in enumerate(self.rows):
            for c in r.cells:
                if root and c.dot.active and c.dot.note:
                    c.interval = interval_label(root, c.dot.note, f)
                    c.interval_visible = c.interval is not None
                else:
                    c.interval = None
                    c.interval_visible = False

    # ---------------- 마크 조작 ----------------
    def mark_dot(self, string: int, fret: int, finger: Optional[str] = None) -> bool:
        c = self.cell(string, fret)
        if c is None:
            return False
        c.dot.active = True
        c.dot.note = note_at_fret(self._tuning.get(string), fret)
        c.dot.finger = finger
        c.dot.text = self._text_for(c.dot)
        return True

    def mark_muted(self, string: int) -> bool:
        c = self.cell(string, 0)
        if c is None:
            return False
        c.muted.active = True
        c.muted.text = "X"
        return True

    def clear_string(self, string: int) -> None:
        for r in self.rows:
            if string > len(r.cells):
                continue
            c = r.cells[string - 1]
            c.dot = Marker()
            c.muted = Marker()
            c.interval = None
            c.interval_visible = False

    def clear(self) -> None:
        for r in self.rows:
            for c in r.cells:
                c.dot = Marker()
                c.muted = Marker()
                c.interval = None
                c.interval_visible = False

    def click(self, string: int, fret: int) -> None:
        """
        점 클릭:
          - fret>0 : 토글. 켜질 때 같은 줄의 다른 마크는 모두 끈다
          - fret=0 : 없음 -> 점 -> 뮤트 -> 없음 순환
        """
        c = self.cell(string, fret)
        if c is None:
            log.debug("click outside diagram: string=%s fret=%s", string, fret)
            return
        if fret == 0:
            if c.dot.active:
                self.clear_string(string)
                self.mark_muted(string)
            elif c.muted.active:
                self.clear_string(string)
            else:
                self.clear_string(string)
                self.mark_dot(string, 0)
            return
        if c.dot.active:
            c.dot = Marker()
            c.interval = None
            c.interval_visible = False
        else:
            self.clear_string(string)
            self.mark_dot(string, fret)

    def click_muted(self, string: int) -> None:
        c = self.cell(string, 0)
        if c is None:
            return
        if c.muted.active:
            c.muted = Marker()
        else:
            self.clear_string(string)
            self.mark_muted(string)

    def set_finger(self, string: int, fret: int, finger: Optional[str]) -> None:
        c = self.cell(string, fret)
        if c is not None and c.dot.active:
            c.dot.finger = finger
            c.dot.text = self._text_for(c.dot)

    # ---------------- 재생성 보존 ----------------
    def capture(self) -> List[DotState]:
        out: List[DotState] = []
        for f, r in enumerate(self.rows):
            for c in r.cells:
                if c.dot.active:
                    out.append(DotState(c.string, f, False, c.dot.finger))
                if f == 0 and c.muted.active:
                    out.append(DotState(c.string, 0, True))
        return out

    def restore(self, states: List[DotState]) -> int:
        """없어진 줄의 마크는 버린다. 복원한 개수를 돌려준다"""
        restored = 0
        for st in states:
            if st.string > self.num_strings:
                log.debug("dropping mark on removed string %d", st.string)
                continue
            ok = self.mark_muted(st.string) if st.muted else self.mark_dot(st.string, st.fret, st.finger)
            restored += int(ok)
        return restored
