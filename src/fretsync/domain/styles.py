from __future__ import annotations
import logging
import re
from typing import Dict, Iterable, Optional

log = logging.getLogger(__name__)

# 번들 스타일시트의 기본값. 오버라이드가 없으면 항상 여기서 읽는다.
STYLESHEET_DEFAULTS: Dict[str, str] = {
    # --- dimensions (Group A) ---
    "--fretboard-width": "300px",
    "--fretboard-height": "420px",
    "--header-height": "30px",
    "--fret-0-height": "40px",
    "--nut-divider-height": "6px",
    "--string-thickest-width": "4px",
    "--string-thinnest-width": "1px",
    "--dot-size": "24px",
    "--interval-indicator-width": "18px",
    "--marker-dot-size": "12px",
    "--dot-text-font-size": "12px",
    "--interval-label-font-size": "10px",
    "--tuning-label-font-size": "12px",
    "--fret-indicator-font-size": "11px",
    "--fret-divider-height": "2px",
    "--fret-divider-width": "100%",
    # --- background / labels (Group B) ---
    "--fingerboard-row-0-color": "#f5f0e6",
    "--main-fret-area-bg-color": "#3b2a1e",
    "--main-fret-area-bg-image": "",
    "--fret-divider-color": "#c0c0c0",
    "--nut-divider-color": "#f0ead6",
    "--fretbinding-background": "#e8e0cc",
    "--marker-dot-color": "#f0ead6",
    "--marker-dot-background-image": "",
    "--tuning-label-color": "#222222",
    "--fret-indicator-color": "#222222",
    "--dot-outer-circle-color": "#1d3557",
    "--dot-inner-circle-color": "#457b9d",
    "--dot-text-color": "#ffffff",
    # --- intervals (Group B) ---
    "--interval-root-color": "#e63946",
    "--interval-minor-2nd-color": "#f4a261",
    "--interval-major-2nd-color": "#e9c46a",
    "--interval-minor-3rd-color": "#2a9d8f",
    "--interval-major-3rd-color": "#264653",
    "--interval-perfect-4th-color": "#8ab17d",
    "--interval-tritone-color": "#6d597a",
    "--interval-perfect-5th-color": "#457b9d",
    "--interval-minor-6th-color": "#b56576",
    "--interval-major-6th-color": "#e56b6f",
    "--interval-minor-7th-color": "#355070",
    "--interval-major-7th-color": "#6a4c93",
    "--interval-octave-color": "#e63946",
    "--interval-minor-9th-color": "#f4a261",
    "--interval-major-9th-color": "#e9c46a",
    "--interval-aug-9th-color": "#2a9d8f",
    "--interval-perfect-11th-color": "#8ab17d",
    "--interval-aug-11th-color": "#6d597a",
}

GROUP_A_STYLE_KEYS = [
    "--fretboard-width", "--fretboard-height", "--header-height",
    "--fret-0-height", "--nut-divider-height",
    "--string-thickest-width", "--string-thinnest-width", "--dot-size",
    "--interval-indicator-width", "--marker-dot-size", "--dot-text-font-size",
    "--interval-label-font-size", "--tuning-label-font-size",
    "--fret-indicator-font-size", "--fret-divider-height", "--fret-divider-width",
]

GROUP_B_STYLE_KEYS = [k for k in STYLESHEET_DEFAULTS if k not in GROUP_A_STYLE_KEYS]

# 바뀌면 프렛 높이를 다시 계산해야 하는 값들
DIMENSION_KEYS = frozenset([
    "--fretboard-width", "--fretboard-height", "--header-height",
    "--fret-0-height", "--string-thickest-width", "--string-thinnest-width",
    "--dot-size", "--num-strings",
])

IMAGE_KEYS = ("--main-fret-area-bg-image", "--marker-dot-background-image")
_NO_IMAGE = ("no-image", "no-dot-image")

_LENGTH_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(px|vh)?\s*$")


def normalize_style_value(key: str, value) -> str:
    """패널의 'no-image' 선택지는 빈 값으로 저장한다"""
    s = "" if value is None else str(value).strip()
    if key in IMAGE_KEYS and s in _NO_IMAGE:
        return ""
    return s


def parse_length(value, viewport_height: float = 900.0) -> Optional[float]:
    """'420px' / '420' / '50vh' -> px. 해석 불가면 None"""
    if value is None:
        return None
    m = _LENGTH_RE.match(str(value))
    if not m:
        return None
    num = float(m.group(1))
    if m.group(2) == "vh":
        return num * float(viewport_height) / 100.0
    return num


def scoped_name(key: str, target_id: str) -> str:
    return f"{key}@{target_id}"


def scope_custom_css(text: str, target_id: str) -> str:
    """
    모든 규칙의 셀렉터 앞에 '#<target>_wrapper ' 를 붙여
    다른 인스턴스로 스타일이 새지 않게 한다. @media 안쪽도 동일.
    """
    if not text or not text.strip():
        return ""
    prefix = f"#{target_id}_wrapper "
    out: list[str] = []
    i, n = 0, len(text)
    while i < n:
        brace = text.find("{", i)
        semi = text.find(";", i)
        if text[i:].lstrip().startswith("@") and semi >= 0 and (brace < 0 or semi < brace):
            # @import 처럼 블록 없는 at-rule 은 그대로 둔다
            out.append(text[i:semi + 1].strip())
            i = semi + 1
            continue
        if brace < 0:
            break
        head = text[i:brace].strip()
        if head.startswith("@"):
            # 블록 전체를 찾아 안쪽만 재귀 스코핑
            depth, j = 1, brace + 1
            while j < n and depth:
                if text[j] == "{":
                    depth += 1
                elif text[j] == "}":
                    depth -= 1
                j += 1
            inner = text[brace + 1:j - 1]
            out.append(f"{head} {{\n{scope_custom_css(inner, target_id)}\n}}")
            i = j
            continue
        close = text.find("}", brace)
        if close < 0:
            close = n
        body = text[brace + 1:close].strip()
        selectors = ", ".join(prefix + s.strip() for s in head.split(",") if s.strip())
        if selectors:
            out.append(f"{selectors} {{ {body} }}")
        i = close + 1
    return "\n".join(out)


class StyleRegistry:
    """
    문서 전체에 하나뿐인 스타일 파라미터 저장소.
    - 기본값: STYLESHEET_DEFAULTS
    - 인스턴스별 값은 scoped_name(key, target) 으로 구분해서 저장
    """

    def __init__(self, defaults: Optional[Dict[str, str]] = None) -> None:
        self.defaults: Dict[str, str] = dict(STYLESHEET_DEFAULTS if defaults is None else defaults)
        self._values: Dict[str, str] = {}
        self._custom_css: Dict[str, str] = {}

    def set(self, target_id: str, key: str, value) -> None:
        self._values[scoped_name(key, target_id)] = normalize_style_value(key, value)

    def remove(self, target_id: str, key: str) -> None:
        self._values.pop(scoped_name(key, target_id), None)

    def get(self, target_id: str, key: str) -> Optional[str]:
        val = self._values.get(scoped_name(key, target_id))
        if val is None or val == "":
            return self.defaults.get(key, val)
        return val

    def overrides(self, target_id: str) -> Dict[str, str]:
        suffix = "@" + target_id
        return {k[: -len(suffix)]: v for k, v in self._values.items() if k.endswith(suffix)}

    def update(self, target_id: str, values: Dict[str, str]) -> None:
        for k, v in values.items():
            self.set(target_id, k, v)

    def clear(self, target_id: str, keys: Optional[Iterable[str]] = None) -> None:
        if keys is None:
            keys = list(self.overrides(target_id))
        for k in keys:
            self.remove(target_id, k)

    # -------- custom CSS --------
    def set_custom_css(self, target_id: str, text: str) -> None:
        scoped = scope_custom_css(text or "", target_id)
        if scoped:
            self._custom_css[target_id] = scoped
        else:
            self._custom_css.pop(target_id, None)

    def custom_css(self, target_id: str) -> Optional[str]:
        return self._custom_css.get(target_id)

    def drop_target(self, target_id: str) -> None:
        self.clear(target_id)
        self._custom_css.pop(target_id, None)
        log.debug("style parameters removed for %s", target_id)


# 프로세스 전역(= document root)
registry = StyleRegistry()
