# src/fretsync/codec/config_codec.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..domain.notes import resolve_tuning
from ..domain.settings import FingeringEntry, SettingsSnapshot
from ..domain.styles import GROUP_A_STYLE_KEYS, GROUP_B_STYLE_KEYS, STYLESHEET_DEFAULTS
from ..engine.presets import check_preset_map, label_from_name
from ..engine.reconciler import is_exportable_entry
from ..errors import LiteralNotFoundError, NotAnObjectError, UnmatchedBraceError
from .literal import find_matching_brace, parse_literal

log = logging.getLogger(__name__)

INIT_TOKEN = "Fretboard.init("
GROUP_KEYS = ("settingsGroupA", "settingsGroupB", "settingsGroupC")
DEFAULT_CSS_PATH = "css/fretboard.css"
INDENT = "    "

_IDENT_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_PRESET_HEAD_RE = re.compile(r"^\s*(themes|instruments)\s*:\s*\{")


# =========================================================
# encode
# =========================================================
def quote(s: str) -> str:
    """작은따옴표 문자열 리터럴"""
    s = (str(s).replace("\\", "\\\\").replace("'", "\\'")
         .replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t"))
    return f"'{s}'"


def _key(k: Any) -> str:
    if isinstance(k, int) and not isinstance(k, bool):
        return str(k)
    k = str(k)
    return k if _IDENT_RE.match(k) else quote(k)


def _sorted_items(d: Mapping[Any, Any]) -> List[Tuple[Any, Any]]:
    """정수 키는 숫자 순서로 먼저, 문자열 키는 사전 순으로"""
    return sorted(d.items(), key=lambda kv: (0, kv[0], "") if isinstance(kv[0], int) else (1, 0, str(kv[0])))


def _scalar(v: Any) -> str:
    if v is None:
        return "null"
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return repr(v)
    return quote(v)


def _block(pairs: List[Tuple[str, str]], level: int) -> str:
    if not pairs:
        return "{}"
    pad = INDENT * (level + 1)
    body = ",\n".join(f"{pad}{k}: {v}" for k, v in pairs)
    return "{\n" + body + "\n" + INDENT * level + "}"


def _map(d: Optional[Mapping[Any, Any]], level: int) -> str:
    if d is None:
        return "null"
    return _block([(_key(k), _scalar(v)) for k, v in _sorted_items(d)], level)


def _fingering(entries: List[FingeringEntry], level: int) -> str:
    if not entries:
        return "[]"
    pad = INDENT * (level + 1)
    lines = [f"{pad}{{ string: {e.string}, fret: {_scalar(e.fret)}, finger: {_scalar(e.finger)} }}"
             for e in entries]
    return "[\n" + ",\n".join(lines) + "\n" + INDENT * level + "]"


def _styles(overrides: Mapping[str, str], keys: Iterable[str], include_all_defaults: bool) -> Dict[str, str]:
    if not include_all_defaults:
        return dict(overrides)
    merged = {k: STYLESHEET_DEFAULTS[k] for k in keys if k in STYLESHEET_DEFAULTS}
    merged.update(overrides)
    return merged


def exportable_fingering(entries: Iterable[FingeringEntry]) -> List[FingeringEntry]:
    valid = [e for e in entries if is_exportable_entry(e)]
    return sorted(valid, key=lambda e: (e.string, e.fret))


def encode_group_a(snapshot: SettingsSnapshot, level: int = 1, include_all_defaults: bool = False) -> str:
    a = snapshot.group_a
    return _block([
        ("dotTextMode", quote(a.dot_text_mode)),
        ("showFretIndicators", quote(a.show_fret_indicators)),
        ("numStrings", str(a.num_strings)),
        ("stringType", quote(a.string_type)),
        ("tuning", _map(a.tuning, level + 1)),
        ("cssVariables", _map(_styles(a.style_overrides, GROUP_A_STYLE_KEYS, include_all_defaults), level + 1)),
    ], level)


def encode_group_b(snapshot: SettingsSnapshot, level: int = 1, include_all_defaults: bool = False) -> str:
    b = snapshot.group_b
    return _block([
        ("fretMarkers", _map(b.fret_markers, level + 1)),
        ("fretboardBindingDisplay", _scalar(b.binding_display)),
        ("cssVariables", _map(_styles(b.style_overrides, GROUP_B_STYLE_KEYS, include_all_defaults), level + 1)),
        ("customCSS", quote(b.custom_style_text or "")),
    ], level)


def encode_group_c(snapshot: SettingsSnapshot, level: int = 1) -> Optional[str]:
    """내보낼 운지가 하나도 없으면 None (섹션 자체를 생략)"""
    c = snapshot.group_c
    entries = exportable_fingering(c.fingering)
    if not entries:
        return None
    return _block([
        ("name", _scalar(c.name)),
        ("root", _scalar(c.root)),
        ("startFret", str(c.start_fret)),
        ("numFrets", str(c.num_frets)),
        ("fingering", _fingering(entries, level + 1)),
    ], level)


def encode_full(snapshot: SettingsSnapshot, target_id: str, include: str = "ABC",
                include_all_defaults: bool = False, container_id: Optional[str] = None,
                css_path: str = DEFAULT_CSS_PATH) -> str:
    """Fretboard.init({...}); 형태의 전체 설정 코드"""
    include = include.upper()
    pairs: List[Tuple[str, str]] = [
        ("containerId", quote(container_id or target_id)),
        ("fretboardId", quote(target_id)),
        ("cssPath", quote(css_path)),
    ]
    if "A" in include:
        pairs.append(("settingsGroupA", encode_group_a(snapshot, 1, include_all_defaults)))
    if "B" in include:
        pairs.append(("settingsGroupB", encode_group_b(snapshot, 1, include_all_defaults)))
    if "C" in include:
        group_c = encode_group_c(snapshot, 1)
        if group_c is None:
            log.debug("no exportable fingering; settingsGroupC omitted")
        else:
            pairs.append(("settingsGroupC", group_c))
    return f"{INIT_TOKEN}{_block(pairs, 0)});"


def encode_theme(snapshot: SettingsSnapshot, name: str, label: Optional[str] = None) -> str:
    b = snapshot.group_b
    pairs = [
        ("themeLabel", quote(label or label_from_name(name))),
        ("fretMarkers", _map(b.fret_markers, 2)),
        ("fretboardBindingDisplay", _scalar(b.binding_display)),
        ("cssVariables", _map(b.style_overrides, 2)),
    ]
    if b.custom_style_text and b.custom_style_text.strip():
        pairs.append(("customCSS", quote(b.custom_style_text)))
    return "themes: " + _block([(_key(name), _block(pairs, 1))], 0)


def encode_instrument(snapshot: SettingsSnapshot, name: str, label: Optional[str] = None) -> str:
    a = snapshot.group_a
    pairs = [
        ("instrumentLabel", quote(label or label_from_name(name))),
        ("tuning", _map(resolve_tuning(a.tuning, a.num_strings), 2)),
        ("numStrings", str(a.num_strings)),
        ("stringType", quote(a.string_type)),
    ]
    return "instruments: " + _block([(_key(name), _block(pairs, 1))], 0)


# =========================================================
# decode
# =========================================================
@dataclass
class DecodedConfig:
    group_a: Optional[Dict[str, Any]]
    group_b: Optional[Dict[str, Any]]
    group_c: Optional[Dict[str, Any]]
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_config(self) -> Dict[str, Any]:
        """FretboardInstance.initialize() 가 받는 모양"""
        out: Dict[str, Any] = {}
        for key, grp in zip(GROUP_KEYS, (self.group_a, self.group_b, self.group_c)):
            if grp is not None:
                out[key] = grp
        for key in ("themes", "instruments"):
            if isinstance(self.raw.get(key), dict):
                out[key] = self.raw[key]
        return out


def strip_comments(text: str) -> str:
    """따옴표 밖의 // 줄 주석과 /* */ 블록 주석 제거"""
    out: List[str] = []
    quote_ch = ""
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if quote_ch:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == quote_ch:
                quote_ch = ""
            i += 1
            continue
        if ch in ("'", '"', "`"):
            quote_ch = ch
            out.append(ch)
            i += 1
            continue
        if text.startswith("//", i):
            nl = text.find("\n", i)
            i = n if nl < 0 else nl
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end < 0 else end + 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _literal_span(text: str) -> str:
    idx = text.find(INIT_TOKEN)
    if idx >= 0:
        j = idx + len(INIT_TOKEN)
        while j < len(text) and text[j].isspace():
            j += 1
        if j >= len(text) or text[j] != "{":
            raise NotAnObjectError("Fretboard.init() argument is not an object literal")
        start = j
    else:
        start = text.find("{")
        if start < 0:
            raise LiteralNotFoundError("no configuration object found in text")
    start, end = find_matching_brace(text, start)
    if end < 0:
        raise UnmatchedBraceError(f"unmatched '{{' at offset {start}")
    return text[start:end]


def decode(text: str) -> DecodedConfig:
    """
    export 코드를 설정 그룹으로 되돌린다.
    - 없는 그룹(또는 null): None
    - 그룹이 객체가 아니면 NotAnObjectError (themes/instruments 항목도)
    실행은 하지 않고 리터럴 파서로만 읽는다.
    """
    cleaned = strip_comments(text or "")
    obj = parse_literal(_literal_span(cleaned))
    if not isinstance(obj, dict):
        raise NotAnObjectError("configuration literal is not an object")

    groups: List[Optional[Dict[str, Any]]] = []
    for key in GROUP_KEYS:
        val = obj.get(key)
        if val is None:
            groups.append(None)
        elif isinstance(val, dict):
            groups.append(val)
        else:
            raise NotAnObjectError(f"{key} must be an object, got {type(val).__name__}")
    for key in ("themes", "instruments"):
        check_preset_map(key, obj.get(key))
    return DecodedConfig(groups[0], groups[1], groups[2], raw=obj)


def decode_presets(text: str) -> Tuple[str, Dict[str, Dict[str, Any]]]:
    """'themes: {...}' / 'instruments: {...}' export 를 (kind, {name: preset}) 로"""
    cleaned = strip_comments(text or "")
    m = _PRESET_HEAD_RE.match(cleaned)
    if not m:
        raise LiteralNotFoundError("expected a 'themes:' or 'instruments:' section")
    kind = m.group(1)
    start, end = find_matching_brace(cleaned, m.end() - 1)
    if end < 0:
        raise UnmatchedBraceError(f"unmatched '{{' at offset {start}")
    obj = parse_literal(cleaned[start:end])
    return kind, check_preset_map(kind, obj)
