from __future__ import annotations
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from .notes import MAX_STRINGS, normalize_note
from .styles import DIMENSION_KEYS, normalize_style_value

log = logging.getLogger(__name__)

DOT_TEXT_MODES = ("note", "finger")
FRET_INDICATOR_MODES = ("all", "none", "first-fret", "first-fret-cond")
STRING_TYPES = ("single", "double")
MARKER_KINDS = ("single", "double")

DEFAULT_FRET_MARKERS: Dict[int, str] = {
    3: "single", 5: "single", 7: "single", 9: "single",
    12: "double",
    15: "single", 17: "single", 19: "single", 21: "single",
    24: "double",
}

# 문서에 쓰인 이름 -> export 포맷 이름
KEY_ALIASES = {
    "styleOverrides": "cssVariables",
    "bindingDisplay": "fretboardBindingDisplay",
    "customStyleText": "customCSS",
}

Fret = Union[int, str, None]      # int | 'none' | None
Finger = Union[int, str]          # int | 'none'


def _to_int(value: Any, default: Optional[int]) -> Optional[int]:
    """숫자로 못 읽으면 default. bool은 숫자로 취급하지 않는다"""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else default
    if isinstance(value, str):
        s = value.strip()
        try:
            return int(s)
        except ValueError:
            try:
                return int(float(s))
            except ValueError:
                return default
    return default


def _to_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s in ("true", "1", "yes", "on"):
            return True
        if s in ("false", "0", "no", "off"):
            return False
    if isinstance(value, int):
        return bool(value)
    return default


def _canonical(partial: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not partial:
        return {}
    return {KEY_ALIASES.get(k, k): v for k, v in partial.items()}


# =========================================================
# FingeringEntry
# =========================================================
@dataclass
class FingeringEntry:
    string: int
    fret: Fret
    finger: Finger = 0

    @property
    def skipped(self) -> bool:
        """fret 정보가 없는 항목 (다이어그램에 그리지 않음)"""
        return self.fret is None or self.fret == "none"

    @property
    def muted(self) -> bool:
        return self.fret == -1

    def to_dict(self) -> Dict[str, Any]:
        return {"string": self.string, "fret": self.fret, "finger": self.finger}

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["FingeringEntry"]:
        """dict / FingeringEntry -> FingeringEntry. string이 없으면 None(버림)"""
        if isinstance(raw, FingeringEntry):
            return copy.copy(raw)
        if not isinstance(raw, Mapping):
            return None
        s = _to_int(raw.get("string"), None)
        if s is None or s < 1:
            return None

        fret_raw = raw.get("fret")
        fret: Fret
        if fret_raw is None or fret_raw == "none":
            fret = fret_raw
        else:
            fret = _to_int(fret_raw, 0)
            if fret is None or fret < -1:
                fret = 0

        finger_raw = raw.get("finger", 0)
        finger: Finger
        if finger_raw == "none":
            finger = "none"
        else:
            finger = _to_int(finger_raw, 0) or 0
            if finger < 0:
                finger = 0
        return cls(string=s, fret=fret, finger=finger)


def coerce_fingering(raw: Any) -> List[FingeringEntry]:
    """같은 줄에 대한 항목이 여러 개면 뒤의 것이 이긴다"""
    if not isinstance(raw, (list, tuple)):
        return []
    by_string: Dict[int, FingeringEntry] = {}
    for item in raw:
        e = FingeringEntry.from_raw(item)
        if e is None:
            log.debug("dropping fingering entry without a string: %r", item)
            continue
        by_string.pop(e.string, None)
        by_string[e.string] = e
    return list(by_string.values())


# =========================================================
# Settings groups
# =========================================================
@dataclass
class SettingsGroupA:
    dot_text_mode: str = "note"
    show_fret_indicators: str = "first-fret-cond"
    num_strings: int = 6
    string_type: str = "single"
    tuning: Optional[Dict[int, str]] = None
    style_overrides: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dotTextMode": self.dot_text_mode,
            "showFretIndicators": self.show_fret_indicators,
            "numStrings": self.num_strings,
            "stringType": self.string_type,
            "tuning": dict(self.tuning) if self.tuning is not None else None,
            "cssVariables": dict(self.style_overrides),
        }


@dataclass
class SettingsGroupB:
    fret_markers: Dict[int, str] = field(default_factory=lambda: dict(DEFAULT_FRET_MARKERS))
    binding_display: bool = True
    style_overrides: Dict[str, str] = field(default_factory=dict)
    custom_style_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fretMarkers": dict(self.fret_markers),
            "fretboardBindingDisplay": self.binding_display,
            "cssVariables": dict(self.style_overrides),
            "customCSS": self.custom_style_text,
        }


@dataclass
class SettingsGroupC:
    name: Optional[str] = None
    root: Optional[str] = None
    start_fret: int = 1
    num_frets: int = 4
    fingering: List[FingeringEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "root": self.root,
            "startFret": self.start_fret,
            "numFrets": self.num_frets,
            "fingering": [e.to_dict() for e in self.fingering],
        }


@dataclass
class SettingsSnapshot:
    group_a: SettingsGroupA
    group_b: SettingsGroupB
    group_c: SettingsGroupC

    def to_dict(self) -> Dict[str, Any]:
        return {
            "settingsGroupA": self.group_a.to_dict(),
            "settingsGroupB": self.group_b.to_dict(),
            "settingsGroupC": self.group_c.to_dict(),
        }


@dataclass
class Change:
    """apply_group_* 결과. 어떤 후속 작업(재생성/지오메트리/라벨)이 필요한지 알려준다"""
    group: str
    keys: Set[str] = field(default_factory=set)
    structural: bool = False
    dimension: bool = False
    window: bool = False
    labels: bool = False
    fingering: bool = False
    custom_css: bool = False

    def __bool__(self) -> bool:
        return bool(self.keys)


# =========================================================
# SettingsStore
# =========================================================
class SettingsStore:
    """
    한 렌더 타깃의 A/B/C 그룹을 보관.
    - 입력에서 빠진 키는 이전 값을 유지
    - cssVariables 는 키 단위로 부분 병합
    """

    def __init__(self) -> None:
        self.group_a = SettingsGroupA()
        self.group_b = SettingsGroupB()
        self.group_c = SettingsGroupC()

    def reset(self) -> None:
        self.group_a = SettingsGroupA()
        self.group_b = SettingsGroupB()
        self.group_c = SettingsGroupC()

    def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot(
            copy.deepcopy(self.group_a),
            copy.deepcopy(self.group_b),
            copy.deepcopy(self.group_c),
        )

    # ---------------- Group A ----------------
    def apply_group_a(self, partial: Optional[Mapping[str, Any]]) -> Change:
        a = self.group_a
        ch = Change("A")
        for key, raw in _canonical(partial).items():
            if key == "dotTextMode":
                val = self._enum(key, raw, DOT_TEXT_MODES, a.dot_text_mode)
                if val != a.dot_text_mode:
                    a.dot_text_mode = val
                    ch.keys.add(key); ch.labels = True
            elif key == "showFretIndicators":
                val = self._enum(key, raw, FRET_INDICATOR_MODES, a.show_fret_indicators)
                if val != a.show_fret_indicators:
                    a.show_fret_indicators = val
                    ch.keys.add(key)
            elif key == "numStrings":
                val = _to_int(raw, a.num_strings)
                val = max(1, min(MAX_STRINGS, val))
                if val != a.num_strings:
                    a.num_strings = val
                    ch.keys.add(key); ch.structural = True; ch.dimension = True
            elif key == "stringType":
                val = self._string_type(raw, a.string_type)
                if val != a.string_type:
                    a.string_type = val
                    ch.keys.add(key); ch.structural = True
            elif key == "tuning":
                val = self._tuning(raw)
                if val != a.tuning:
                    a.tuning = val
                    ch.keys.add(key); ch.labels = True
            elif key == "cssVariables":
                changed = self._merge_styles(a.style_overrides, raw)
                if changed:
                    ch.keys.add(key)
                    ch.dimension = ch.dimension or bool(changed & DIMENSION_KEYS)
            else:
                log.debug("ignoring unknown Group A key %r", key)
        return ch

    # ---------------- Group B ----------------
    def apply_group_b(self, partial: Optional[Mapping[str, Any]]) -> Change:
        b = self.group_b
        ch = Change("B")
        for key, raw in _canonical(partial).items():
            if key == "fretMarkers":
                val = self._markers(raw)
                if val != b.fret_markers:
                    b.fret_markers = val
                    ch.keys.add(key)
            elif key == "fretboardBindingDisplay":
                val = _to_bool(raw, b.binding_display)
                if val != b.binding_display:
                    b.binding_display = val
                    ch.keys.add(key)
            elif key == "cssVariables":
                changed = self._merge_styles(b.style_overrides, raw)
                if changed:
                    ch.keys.add(key)
                    ch.dimension = ch.dimension or bool(changed & DIMENSION_KEYS)
            elif key == "customCSS":
                val = "" if raw is None else str(raw)
                if val != b.custom_style_text:
                    b.custom_style_text = val
                    ch.keys.add(key); ch.custom_css = True
            else:
                log.debug("ignoring unknown Group B key %r", key)
        return ch

    # ---------------- Group C ----------------
    def apply_group_c(self, partial: Optional[Mapping[str, Any]]) -> Change:
        c = self.group_c
        ch = Change("C")
        for key, raw in _canonical(partial).items():
            if key == "name":
                val = None if raw is None or raw == "" else str(raw)
                if val != c.name:
                    c.name = val
                    ch.keys.add(key)
            elif key == "root":
                val = normalize_note(raw)
                if val != c.root:
                    c.root = val
                    ch.keys.add(key); ch.labels = True
            elif key == "startFret":
                val = max(1, _to_int(raw, c.start_fret))
                if val != c.start_fret:
                    c.start_fret = val
                    ch.keys.add(key); ch.window = True
            elif key == "numFrets":
                val = max(1, _to_int(raw, c.num_frets))
                if val != c.num_frets:
                    c.num_frets = val
                    ch.keys.add(key); ch.window = True
            elif key == "fingering":
                val = coerce_fingering(raw)
                if val != c.fingering:
                    c.fingering = val
                    ch.keys.add(key); ch.fingering = True
            else:
                log.debug("ignoring unknown Group C key %r", key)
        return ch

    # ---------------- coercion helpers ----------------
    @staticmethod
    def _enum(key: str, raw: Any, allowed, current: str) -> str:
        val = str(raw).strip() if raw is not None else ""
        if val in allowed:
            return val
        log.warning("invalid %s %r; keeping %r", key, raw, current)
        return current

    @staticmethod
    def _string_type(raw: Any, current: str) -> str:
        val = str(raw).strip().lower() if raw is not None else ""
        val = {"1": "single", "2": "double"}.get(val, val)
        if val in STRING_TYPES:
            return val
        log.warning("invalid stringType %r; keeping %r", raw, current)
        return current

    @staticmethod
    def _tuning(raw: Any) -> Optional[Dict[int, str]]:
        if not isinstance(raw, Mapping):
            return None
        out: Dict[int, str] = {}
        for k, v in raw.items():
            s = _to_int(k, None)
            n = normalize_note(v)
            if s is None or s < 1 or n is None:
                log.debug("dropping tuning entry %r=%r", k, v)
                continue
            out[s] = n
        return dict(sorted(out.items()))

    @staticmethod
    def _markers(raw: Any) -> Dict[int, str]:
        out: Dict[int, str] = {}
        if not isinstance(raw, Mapping):
            return out
        for k, v in raw.items():
            f = _to_int(k, None)
            kind = str(v).strip().lower() if v is not None else ""
            if f is None or f < 0 or kind not in MARKER_KINDS:
                log.debug("dropping fret marker %r=%r", k, v)
                continue
            out[f] = kind
        return dict(sorted(out.items()))

    @staticmethod
    def _merge_styles(target: Dict[str, str], raw: Any) -> Set[str]:
        """실제로 값이 바뀐 키 집합을 돌려준다"""
        changed: Set[str] = set()
        if not isinstance(raw, Mapping):
            return changed
        for k, v in raw.items():
            key = str(k)
            val = normalize_style_value(key, v)
            if target.get(key) != val:
                target[key] = val
                changed.add(key)
        return changed
