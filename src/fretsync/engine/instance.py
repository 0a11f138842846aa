from __future__ import annotations
import logging
from typing import Any, List, Mapping, Optional

from ..domain.diagram import Diagram
from ..domain.geometry import GeometryEngine
from ..domain.notes import resolve_tuning
from ..domain.settings import Change, FingeringEntry, SettingsSnapshot, SettingsStore
from ..domain.styles import StyleRegistry
from ..sync.state import SyncState
from .presets import PresetApplier, PresetCatalog
from .reconciler import apply_fingering, derive_fingering, reconcile

log = logging.getLogger(__name__)


class FretboardInstance:
    """
    렌더 타깃 하나의 컨텍스트.
    전역 상태 대신 여기에 설정/다이어그램/프리셋/동기화 플래그를 모두 둔다.
    """

    def __init__(self, target_id: str, styles: StyleRegistry, geometry: GeometryEngine,
                 catalog: Optional[PresetCatalog] = None) -> None:
        self.target_id = target_id
        self.styles = styles
        self.geometry = geometry
        self.store = SettingsStore()
        self.diagram = Diagram(target_id)
        self.catalog = catalog if catalog is not None else PresetCatalog()
        self.presets = PresetApplier(self)
        self.active_theme: Optional[str] = None
        self.active_instrument: Optional[str] = None
        self.sync = SyncState()
        self.last_fingering_state: Optional[str] = None
        self.scheduler = None       # SyncScheduler.attach() 가 채운다

    # ---------------- 초기화 ----------------
    def initialize(self, config: Optional[Mapping[str, Any]] = None) -> None:
        """
        적용 순서:
          1) 카탈로그 첫 악기  2) 명시적 Group A
          3) 카탈로그 첫 테마  4) 명시적 Group B
          5) Group C (운지 포함)
        """
        config = config or {}
        if "themes" in config or "instruments" in config:
            # 검증이 끝나기 전에는 기존 상태를 건드리지 않는다
            self.catalog = PresetCatalog.from_dict(
                {"themes": config.get("themes"), "instruments": config.get("instruments")})

        self.store.reset()
        self.styles.clear(self.target_id)
        self.styles.set_custom_css(self.target_id, "")
        self.active_theme = None
        self.active_instrument = None
        self.last_fingering_state = None
        self._rebuild()

        if self.catalog.instruments:
            self.presets.apply_instrument(self.catalog.instrument_names[0])
        self.update_settings_group_a(config.get("settingsGroupA") or {})

        if self.catalog.themes:
            self.presets.apply_theme(self.catalog.theme_names[0])
        self.update_settings_group_b(config.get("settingsGroupB") or {})

        self.update_settings_group_c(config.get("settingsGroupC") or {}, display_immediately=True)
        reconcile(self)
        log.info("%s initialized (%d strings)", self.target_id, self.store.group_a.num_strings)

    def _rebuild(self) -> None:
        """저장된 설정만으로 다이어그램/스타일을 처음부터 다시 만든다"""
        a, b, c = self.store.group_a, self.store.group_b, self.store.group_c
        self.diagram.regenerate(a.num_strings, a.string_type)
        self.diagram.set_window(c.start_fret, c.num_frets)
        self.diagram.set_tuning(resolve_tuning(a.tuning, a.num_strings))
        self.diagram.set_dot_text_mode(a.dot_text_mode)
        self.styles.update(self.target_id, a.style_overrides)
        self.styles.update(self.target_id, b.style_overrides)
        self.styles.set(self.target_id, "--num-strings", str(a.num_strings))
        self.styles.set_custom_css(self.target_id, b.custom_style_text)
        self.geometry.apply(self)

    # ---------------- 설정 갱신 ----------------
    def update_settings_group_a(self, partial: Optional[Mapping[str, Any]]) -> Change:
        ch = self.store.apply_group_a(partial)
        if not ch:
            return ch
        a = self.store.group_a
        if "cssVariables" in ch.keys:
            self.styles.update(self.target_id, a.style_overrides)

        if ch.structural:
            # 레이아웃 변경: 점 상태를 잡아두고 재생성 후 복원
            states = self.diagram.capture()
            self.diagram.regenerate(a.num_strings, a.string_type)
            self.diagram.set_tuning(resolve_tuning(a.tuning, a.num_strings))
            self.diagram.restore(states)
            self.styles.set(self.target_id, "--num-strings", str(a.num_strings))
        elif "tuning" in ch.keys:
            self.diagram.set_tuning(resolve_tuning(a.tuning, a.num_strings))

        if "dotTextMode" in ch.keys:
            self.diagram.set_dot_text_mode(a.dot_text_mode)
        if ch.structural or ch.labels:
            self.diagram.update_intervals(self.store.group_c.root)
        if ch.structural or ch.dimension:
            self.geometry.apply(self)
        if ch.structural:
            reconcile(self)
        return ch

    def update_settings_group_b(self, partial: Optional[Mapping[str, Any]]) -> Change:
        ch = self.store.apply_group_b(partial)
        if not ch:
            return ch
        b = self.store.group_b
        if "cssVariables" in ch.keys:
            self.styles.update(self.target_id, b.style_overrides)
        if ch.custom_css:
            self.styles.set_custom_css(self.target_id, b.custom_style_text)
        if ch.dimension:
            self.geometry.apply(self)
        return ch

    def update_settings_group_c(self, partial: Optional[Mapping[str, Any]],
                                display_immediately: bool = True) -> Change:
        ch = self.store.apply_group_c(partial)
        c = self.store.group_c
        if ch.window:
            self.diagram.set_window(c.start_fret, c.num_frets)
            self.geometry.apply(self)
        if display_immediately and partial and "fingering" in partial:
            apply_fingering(self, c.fingering)
            reconcile(self)
        elif ch.labels:
            self.diagram.update_intervals(c.root)
        return ch

    # ---------------- 다이어그램 조작 ----------------
    def click(self, string: int, fret: int, muted: bool = False) -> bool:
        """점 클릭 후 운지 재계산. 운지가 바뀌었으면 True"""
        if muted:
            self.diagram.click_muted(string)
        else:
            self.diagram.click(string, fret)
        self.diagram.update_intervals(self.store.group_c.root)
        return reconcile(self)

    def fingering_from_dot_state(self) -> List[FingeringEntry]:
        return derive_fingering(self)

    def snapshot(self) -> SettingsSnapshot:
        """export 용 스냅샷. 운지는 항상 다이어그램에서 다시 읽는다"""
        snap = self.store.snapshot()
        snap.group_c.fingering = derive_fingering(self)
        return snap

    def reset_to_defaults(self) -> None:
        self.store.reset()
        self.styles.clear(self.target_id)
        self.active_theme = None
        self.active_instrument = None
        self.last_fingering_state = None
        self._rebuild()
        reconcile(self)
        log.info("%s reset to defaults", self.target_id)

    def teardown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
            self.scheduler = None
        self.geometry.forget(self.target_id)
        self.styles.drop_target(self.target_id)
        self.sync.reset()
