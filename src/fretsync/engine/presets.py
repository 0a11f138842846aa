# src/fretsync/engine/presets.py
from __future__ import annotations
import copy
import logging
import yaml
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..errors import NotAnObjectError, UnknownPresetError

if TYPE_CHECKING:
    from .instance import FretboardInstance

log = logging.getLogger(__name__)

Preset = Dict[str, Any]

THEME_KEYS = ("fretMarkers", "fretboardBindingDisplay", "cssVariables", "customCSS")
INSTRUMENT_KEYS = ("tuning", "numStrings", "stringType")


@dataclass
class PresetCatalog:
    themes: Dict[str, Preset] = field(default_factory=dict)        # name -> partial B
    instruments: Dict[str, Preset] = field(default_factory=dict)   # name -> partial A

    @classmethod
    def from_yaml(cls, path: str) -> "PresetCatalog":
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: Any) -> "PresetCatalog":
        if not isinstance(raw, dict):
            raise ValueError("preset catalog must be a mapping")

        # -----------------------------
        # 포맷 A: items 리스트 ({kind, name, ...})
        # -----------------------------
        if "items" in raw:
            themes: Dict[str, Preset] = {}
            instruments: Dict[str, Preset] = {}
            for it in raw["items"]:
                kind = it.get("kind")
                name = it["name"]
                body = {k: v for k, v in it.items() if k not in ("kind", "name")}
                if kind == "theme":
                    themes[name] = body
                elif kind == "instrument":
                    instruments[name] = body
                else:
                    raise ValueError(f"unknown preset kind {kind!r} for {name!r}")
            return cls(themes=themes, instruments=instruments)

        # -----------------------------
        # 포맷 B: themes / instruments 맵 (export 텍스트와 같은 모양)
        # -----------------------------
        if "themes" in raw or "instruments" in raw:
            return cls(
                themes=check_preset_map("themes", raw.get("themes")),
                instruments=check_preset_map("instruments", raw.get("instruments")),
            )

        raise ValueError("preset catalog 포맷을 인식할 수 없습니다.")

    @property
    def theme_names(self) -> List[str]:
        return list(self.themes.keys())

    @property
    def instrument_names(self) -> List[str]:
        return list(self.instruments.keys())

    def register_theme(self, name: str, preset: Preset) -> None:
        self.themes[name] = dict(preset)

    def register_instrument(self, name: str, preset: Preset) -> None:
        self.instruments[name] = dict(preset)


def check_preset_map(kind: str, raw: Any) -> Dict[str, Preset]:
    """{name: {...}} 모양인지 확인. 항목 하나라도 객체가 아니면 NotAnObjectError"""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise NotAnObjectError(f"{kind} must be an object, got {type(raw).__name__}")
    for name, preset in raw.items():
        if not isinstance(preset, dict):
            raise NotAnObjectError(f"{kind} entry {name!r} is not an object")
    return dict(raw)


def label_from_name(name: str) -> str:
    """'guitarEbony' -> 'Guitar Ebony'"""
    if not name:
        return ""
    s = name[0].upper() + name[1:]
    out = [s[0]]
    for ch in s[1:]:
        if ch.isupper():
            out.append(" ")
        out.append(ch)
    return "".join(out)


class PresetApplier:
    """테마(Group B) / 악기(Group A 일부) 적용과 활성 선택 추적"""

    def __init__(self, instance: "FretboardInstance") -> None:
        self.instance = instance

    @property
    def catalog(self) -> PresetCatalog:
        return self.instance.catalog

    def apply_theme(self, name: str) -> None:
        preset = self.catalog.themes.get(name)
        if preset is None:
            raise UnknownPresetError("theme", name)
        partial = {k: copy.deepcopy(preset[k]) for k in THEME_KEYS if k in preset}
        self.instance.update_settings_group_b(partial)
        self.instance.active_theme = name
        log.info("theme %s applied to %s", name, self.instance.target_id)

    def apply_instrument(self, name: str) -> None:
        preset = self.catalog.instruments.get(name)
        if preset is None:
            raise UnknownPresetError("instrument", name)
        partial = {k: copy.deepcopy(preset[k]) for k in INSTRUMENT_KEYS if k in preset}
        self.instance.update_settings_group_a(partial)
        self.instance.active_instrument = name
        log.info("instrument %s applied to %s", name, self.instance.target_id)

    def next_theme(self, step: int = 1) -> Optional[str]:
        keys = self.catalog.theme_names
        if not keys:
            return None
        cur = self.instance.active_theme
        i = (keys.index(cur) + step) % len(keys) if cur in keys else 0
        self.apply_theme(keys[i])
        return keys[i]
