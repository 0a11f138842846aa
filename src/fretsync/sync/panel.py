from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from ..domain.diagram import MAX_FRET
from ..domain.notes import resolve_tuning
from ..domain.settings import SettingsSnapshot
from ..domain.styles import GROUP_A_STYLE_KEYS, GROUP_B_STYLE_KEYS

if TYPE_CHECKING:
    from ..engine.instance import FretboardInstance

log = logging.getLogger(__name__)

# 여기 없는 필드는 자유 입력(text)
_SELECT_KEYS = {"dotTextMode", "showFretIndicators", "stringType", "themeSelector", "instrumentSelector"}
_CHECKBOX_KEYS = {"fretboardBindingDisplay"}
_C_KEYS = ("name", "root", "startFret", "numFrets")
STRUCTURAL_KEYS = {"numStrings", "stringType", "instrumentSelector"}

MUTED_TEXT = "x"


@dataclass
class PanelField:
    key: str
    group: str           # 'A' | 'B' | 'C' | 'preset'
    value: str = ""
    focused: bool = False
    kind: str = "text"   # 'text' | 'select' | 'checkbox'

    @property
    def typed(self) -> bool:
        return self.kind == "text"


def _kind(key: str) -> str:
    if key in _SELECT_KEYS or key.startswith("fretMarker."):
        return "select"
    if key in _CHECKBOX_KEYS:
        return "checkbox"
    return "text"


def _display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _string_color_key(n: int) -> str:
    # 1~6번줄은 스타일시트 기본 색 변수를 그대로 덮어쓴다
    return f"--string-{n}-default-color" if n <= 6 else f"--string-{n}-color"


class Panel:
    """
    편집 패널의 필드 모델. input_refs 가 스케줄러가 값을 써 넣는 대상이다.
      tuning.<n> / fingering.<n>.fret / fingering.<n>.finger / stringColor.<n>
      cssA.<var> / cssB.<var> / fretMarker.<f>
    """

    def __init__(self) -> None:
        self.input_refs: Dict[str, PanelField] = {}
        self.string_count = 0

    # ---------------- 구성 ----------------
    def _add(self, key: str, group: str) -> None:
        self.input_refs[key] = PanelField(key, group, kind=_kind(key))

    def build(self, instance: "FretboardInstance") -> None:
        self.input_refs.clear()
        for key in ("dotTextMode", "showFretIndicators", "numStrings", "stringType"):
            self._add(key, "A")
        for var in GROUP_A_STYLE_KEYS:
            self._add(f"cssA.{var}", "A")
        self._add("fretboardBindingDisplay", "B")
        self._add("customCSS", "B")
        for f in range(1, MAX_FRET + 1):
            self._add(f"fretMarker.{f}", "B")
        for var in GROUP_B_STYLE_KEYS:
            self._add(f"cssB.{var}", "B")
        for key in _C_KEYS:
            self._add(key, "C")
        self._add("themeSelector", "preset")
        self._add("instrumentSelector", "preset")
        self.rebuild_string_fields(instance.store.group_a.num_strings)
        self.refresh(instance)

    def rebuild_string_fields(self, num_strings: int) -> None:
        """줄 수에 따라 달라지는 필드 묶음을 통째로 다시 만든다"""
        prefixes = ("tuning.", "fingering.", "stringColor.")
        for key in [k for k in self.input_refs if k.startswith(prefixes)]:
            del self.input_refs[key]
        for n in range(1, int(num_strings) + 1):
            self._add(f"tuning.{n}", "A")
            self._add(f"fingering.{n}.fret", "C")
            self._add(f"fingering.{n}.finger", "C")
            self._add(f"stringColor.{n}", "B")
        self.string_count = int(num_strings)
        log.debug("panel string fields rebuilt for %d strings", self.string_count)

    def refresh(self, instance: "FretboardInstance") -> None:
        """가드 없이 모든 필드를 현재 값으로 (빌드 직후 전용)"""
        for key, val in self.target_values(instance).items():
            self.input_refs[key].value = val

    # ---------------- 포커스 ----------------
    def focus(self, key: str) -> None:
        for f in self.input_refs.values():
            f.focused = f.key == key

    def blur(self) -> None:
        for f in self.input_refs.values():
            f.focused = False

    @property
    def focused_key(self) -> Optional[str]:
        for f in self.input_refs.values():
            if f.focused:
                return f.key
        return None

    def value(self, key: str) -> Optional[str]:
        f = self.input_refs.get(key)
        return f.value if f else None

    # ---------------- 설정 -> 필드 ----------------
    def target_values(self, instance: "FretboardInstance", snapshot: Optional[SettingsSnapshot] = None,
                      fingering: bool = True) -> Dict[str, str]:
        snap = snapshot if snapshot is not None else instance.snapshot()
        a, b, c = snap.group_a, snap.group_b, snap.group_c
        tid = instance.target_id
        styles = instance.styles
        out: Dict[str, str] = {
            "dotTextMode": a.dot_text_mode,
            "showFretIndicators": a.show_fret_indicators,
            "numStrings": str(a.num_strings),
            "stringType": a.string_type,
            "fretboardBindingDisplay": _display(b.binding_display),
            "customCSS": b.custom_style_text or "",
            "name": _display(c.name),
            "root": _display(c.root),
            "startFret": str(c.start_fret),
            "numFrets": str(c.num_frets),
            "themeSelector": _display(instance.active_theme),
            "instrumentSelector": _display(instance.active_instrument),
        }
        for var in GROUP_A_STYLE_KEYS:
            out[f"cssA.{var}"] = a.style_overrides.get(var) or _display(styles.get(tid, var))
        for var in GROUP_B_STYLE_KEYS:
            out[f"cssB.{var}"] = b.style_overrides.get(var) or _display(styles.get(tid, var))
        for f in range(1, MAX_FRET + 1):
            out[f"fretMarker.{f}"] = b.fret_markers.get(f, "")

        tuning = resolve_tuning(a.tuning, a.num_strings)
        for n in range(1, self.string_count + 1):
            out[f"tuning.{n}"] = tuning.get(n, "")
            out[f"stringColor.{n}"] = _display(b.style_overrides.get(_string_color_key(n)))
        if fingering:
            out.update(self.fingering_values(snap))
        return {k: v for k, v in out.items() if k in self.input_refs}

    def fingering_values(self, snap: SettingsSnapshot) -> Dict[str, str]:
        by_string = {e.string: e for e in snap.group_c.fingering}
        out: Dict[str, str] = {}
        for n in range(1, self.string_count + 1):
            e = by_string.get(n)
            if e is None or e.skipped:
                out[f"fingering.{n}.fret"] = ""
                out[f"fingering.{n}.finger"] = ""
            elif e.muted:
                out[f"fingering.{n}.fret"] = MUTED_TEXT
                out[f"fingering.{n}.finger"] = ""
            else:
                out[f"fingering.{n}.fret"] = str(e.fret)
                out[f"fingering.{n}.finger"] = "" if e.finger in (0, "none") else str(e.finger)
        return out

    # ---------------- 필드 -> 설정 ----------------
    def parse_change(self, instance: "FretboardInstance", key: str, raw: str) -> Optional[Tuple[str, Any]]:
        """
        필드 편집 하나를 (그룹, partial) 로 바꾼다.
        프리셋 선택은 ('theme' | 'instrument', 이름).
        """
        a = instance.store.group_a
        b = instance.store.group_b
        raw = "" if raw is None else str(raw)

        if key in ("dotTextMode", "showFretIndicators", "numStrings", "stringType"):
            return "A", {key: raw}
        if key.startswith("tuning."):
            n = int(key.split(".", 1)[1])
            tuning = dict(a.tuning) if a.tuning is not None else resolve_tuning(None, a.num_strings)
            tuning[n] = raw
            return "A", {"tuning": tuning}
        if key.startswith("cssA."):
            return "A", {"cssVariables": {key[5:]: raw}}
        if key.startswith("cssB."):
            return "B", {"cssVariables": {key[5:]: raw}}
        if key.startswith("stringColor."):
            n = int(key.split(".", 1)[1])
            return "B", {"cssVariables": {_string_color_key(n): raw}}
        if key.startswith("fretMarker."):
            f = int(key.split(".", 1)[1])
            markers = dict(b.fret_markers)
            if raw:
                markers[f] = raw
            else:
                markers.pop(f, None)
            return "B", {"fretMarkers": markers}
        if key in ("fretboardBindingDisplay", "customCSS"):
            return "B", {key: raw}
        if key in _C_KEYS:
            return "C", {key: raw}
        if key.startswith("fingering."):
            return "C", {"fingering": self._merge_fingering(instance, key, raw)}
        if key == "themeSelector":
            return "theme", raw
        if key == "instrumentSelector":
            return "instrument", raw
        log.warning("unknown panel field %r", key)
        return None

    @staticmethod
    def _merge_fingering(instance: "FretboardInstance", key: str, raw: str) -> List[Dict[str, Any]]:
        """다이어그램의 현재 운지에 줄 하나만 바꿔 끼운다"""
        _, n_txt, part = key.split(".")
        n = int(n_txt)
        current = {e.string: e.to_dict() for e in instance.fingering_from_dot_state()}
        entry = current.get(n, {"string": n, "fret": None, "finger": 0})
        text = raw.strip()
        if part == "fret":
            if text == "":
                current.pop(n, None)
                return list(current.values())
            entry["fret"] = -1 if text.lower() == MUTED_TEXT else text
        else:
            entry["finger"] = text or 0
            if entry.get("fret") is None:
                # 프렛 없이 손가락만 입력한 경우는 아직 그릴 게 없다
                return list(current.values())
        current[n] = entry
        return list(current.values())
