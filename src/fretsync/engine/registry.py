from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional

from ..domain.geometry import GeometryEngine
from ..domain.settings import FingeringEntry, SettingsGroupA, SettingsGroupB, SettingsGroupC
from ..domain.styles import StyleRegistry, registry as default_styles
from .instance import FretboardInstance
from .presets import PresetCatalog

log = logging.getLogger(__name__)


class FretboardRegistry:
    """
    렌더 타깃 id -> FretboardInstance.
    패널/CLI가 부르는 공개 API. 없는 타깃은 경고만 남기고 None 을 돌려준다.
    """

    def __init__(self, styles: Optional[StyleRegistry] = None, viewport_height: float = 900.0) -> None:
        self.styles = styles if styles is not None else default_styles
        self.geometry = GeometryEngine(self.styles, viewport_height=viewport_height)
        self._instances: Dict[str, FretboardInstance] = {}

    # ---------------- 생성/삭제 ----------------
    def init(self, target_id: str, config: Optional[Mapping[str, Any]] = None,
             catalog: Optional[PresetCatalog] = None) -> FretboardInstance:
        inst = self._instances.get(target_id)
        if inst is None:
            inst = FretboardInstance(target_id, self.styles, self.geometry, catalog)
            self._instances[target_id] = inst
        elif catalog is not None:
            inst.catalog = catalog
        inst.initialize(config)
        return inst

    def remove(self, target_id: str) -> bool:
        inst = self._instances.pop(target_id, None)
        if inst is None:
            log.warning("remove: no fretboard instance for %r", target_id)
            return False
        inst.teardown()
        return True

    def get_instance(self, target_id: str) -> Optional[FretboardInstance]:
        inst = self._instances.get(target_id)
        if inst is None:
            log.warning("no fretboard instance for %r", target_id)
        return inst

    @property
    def target_ids(self) -> List[str]:
        return list(self._instances.keys())

    # ---------------- 조회 ----------------
    def get_settings_group_a(self, target_id: str) -> Optional[SettingsGroupA]:
        inst = self.get_instance(target_id)
        return inst.store.snapshot().group_a if inst else None

    def get_settings_group_b(self, target_id: str) -> Optional[SettingsGroupB]:
        inst = self.get_instance(target_id)
        return inst.store.snapshot().group_b if inst else None

    def get_settings_group_c(self, target_id: str) -> Optional[SettingsGroupC]:
        inst = self.get_instance(target_id)
        return inst.snapshot().group_c if inst else None

    def get_fingering_from_dot_state(self, target_id: str) -> Optional[List[FingeringEntry]]:
        inst = self.get_instance(target_id)
        return inst.fingering_from_dot_state() if inst else None

    # ---------------- 갱신 ----------------
    def update_settings_group_a(self, partial: Mapping[str, Any], target_id: str):
        inst = self.get_instance(target_id)
        return inst.update_settings_group_a(partial) if inst else None

    def update_settings_group_b(self, partial: Mapping[str, Any], target_id: str):
        inst = self.get_instance(target_id)
        return inst.update_settings_group_b(partial) if inst else None

    def update_settings_group_c(self, partial: Mapping[str, Any], target_id: str,
                                display_immediately: bool = True):
        inst = self.get_instance(target_id)
        return inst.update_settings_group_c(partial, display_immediately) if inst else None

    def apply_theme(self, name: str, target_id: str) -> Optional[str]:
        """없는 테마 이름이면 UnknownPresetError (상태는 그대로)"""
        inst = self.get_instance(target_id)
        if inst is None:
            return None
        inst.presets.apply_theme(name)
        return inst.active_theme

    def apply_instrument(self, name: str, target_id: str) -> Optional[str]:
        inst = self.get_instance(target_id)
        if inst is None:
            return None
        inst.presets.apply_instrument(name)
        return inst.active_instrument

    def apply_imported_config(self, full_config: Mapping[str, Any], target_id: str) -> Optional[FretboardInstance]:
        """import 된 설정으로 처음부터 다시 초기화"""
        inst = self.get_instance(target_id)
        if inst is None:
            return None
        inst.initialize(full_config)
        return inst

    def reset_to_defaults(self, target_id: str) -> None:
        inst = self.get_instance(target_id)
        if inst is not None:
            inst.reset_to_defaults()

    def click(self, target_id: str, string: int, fret: int, muted: bool = False) -> Optional[bool]:
        inst = self.get_instance(target_id)
        return inst.click(string, fret, muted) if inst else None
