# src/fretsync/sync/scheduler.py
from __future__ import annotations
import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from ..engine.reconciler import reconcile
from .panel import STRUCTURAL_KEYS, Panel
from .state import SyncState

if TYPE_CHECKING:
    from ..config import AppConfig
    from ..engine.instance import FretboardInstance
    from ..engine.registry import FretboardRegistry

log = logging.getLogger(__name__)

_STRING_PREFIXES = ("tuning.", "fingering.", "stringColor.")


class SyncScheduler:
    """
    타깃 하나에 대해 다이어그램/설정 -> 패널 필드 동기화를 주기적으로 수행.
    - tick: period 마다. is_syncing 이면 통째로 건너뜀
    - on_field_change: 패널 -> 설정 쓰기.
        text 필드는 그 필드만 edit_guard 동안, select/checkbox 는 tick 전체를 guard 동안 막는다
    """

    def __init__(self, registry: "FretboardRegistry", target_id: str, panel: Optional[Panel] = None,
                 period: float = 0.2, guard: float = 0.1, edit_guard: float = 0.3,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.registry = registry
        self.target_id = target_id
        self.panel = panel if panel is not None else Panel()
        self.period = float(period)
        self.guard = float(guard)
        self.edit_guard = float(edit_guard)
        self.clock = clock
        self.ticks = 0
        self.skipped = 0
        self._task: Optional[asyncio.Task] = None
        self._shown_fingering: Optional[str] = None

    @classmethod
    def from_config(cls, registry: "FretboardRegistry", target_id: str, cfg: "AppConfig",
                    panel: Optional[Panel] = None) -> "SyncScheduler":
        return cls(registry, target_id, panel, period=cfg.sync_period,
                   guard=cfg.sync_guard, edit_guard=cfg.sync_edit_guard)

    # ---------------- 연결 ----------------
    def _instance(self) -> Optional["FretboardInstance"]:
        return self.registry.get_instance(self.target_id)

    def attach(self) -> bool:
        inst = self._instance()
        if inst is None:
            return False
        if inst.scheduler is not None and inst.scheduler is not self:
            inst.scheduler.stop()
        inst.scheduler = self
        self.panel.build(inst)
        self._shown_fingering = inst.last_fingering_state
        return True

    @property
    def state(self) -> Optional[SyncState]:
        inst = self._instance()
        return inst.sync if inst else None

    # ---------------- 주기 실행 ----------------
    def start(self) -> asyncio.Task:
        """실행 중인 이벤트 루프 안에서 호출"""
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.period)
            try:
                self.tick()
            except Exception:
                # 한 번 실패해도 다음 주기는 계속 돈다
                log.exception("sync tick failed for %s", self.target_id)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            log.debug("sync loop for %s cancelled", self.target_id)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---------------- tick ----------------
    def tick(self) -> int:
        """패널에 실제로 써 넣은 필드 수를 돌려준다"""
        inst = self._instance()
        if inst is None:
            self.stop()
            return 0
        state = inst.sync
        state.release_due(self.clock())
        if state.is_syncing:
            self.skipped += 1
            return 0

        self.ticks += 1
        written = 0
        with state.hold():
            inst.geometry.retry_pending()

            rebuilt = False
            if self.panel.string_count != inst.store.group_a.num_strings:
                self.panel.rebuild_string_fields(inst.store.group_a.num_strings)
                rebuilt = True

            reconcile(inst)
            snap = inst.snapshot()
            focused = self.panel.focused_key
            targets = self.panel.target_values(inst, snap, fingering=False)
            if rebuilt or inst.last_fingering_state != self._shown_fingering:
                fvals = self.panel.fingering_values(snap)
                targets.update(fvals)
                # 막힌 필드가 있으면 다음 tick 에서 다시 쓴다
                if not any(self._blocked(k, focused, state) for k in fvals):
                    self._shown_fingering = inst.last_fingering_state

            for key, value in targets.items():
                written += int(self._write(key, value, focused, state))
        return written

    @staticmethod
    def _blocked(key: str, focused: Optional[str], state: SyncState) -> bool:
        return key == focused or (state.user_editing and key == state.editing_key)

    def _write(self, key: str, value: str, focused: Optional[str], state: SyncState) -> bool:
        field = self.panel.input_refs.get(key)
        if field is None or self._blocked(key, focused, state):
            return False
        if field.value == value:
            return False
        field.value = value
        return True

    # ---------------- 패널 -> 설정 ----------------
    def on_field_change(self, key: str, raw: str, typed: Optional[bool] = None) -> bool:
        """필드 편집을 설정에 반영. 사용자 입력은 항상 이긴다"""
        inst = self._instance()
        if inst is None:
            return False
        state = inst.sync
        now = self.clock()
        state.release_due(now)

        field = self.panel.input_refs.get(key)
        if field is not None:
            field.value = "" if raw is None else str(raw)
        if typed is None:
            typed = field.typed if field is not None else False
        if typed:
            state.begin_edit(key, now, self.edit_guard)
        else:
            state.begin_write(now, self.guard)

        parsed = self.panel.parse_change(inst, key, raw)
        if parsed is None:
            return False
        group, payload = parsed
        tid = self.target_id
        with state.hold():
            if group == "A":
                self.registry.update_settings_group_a(payload, tid)
            elif group == "B":
                self.registry.update_settings_group_b(payload, tid)
            elif group == "C":
                self.registry.update_settings_group_c(payload, tid, display_immediately=True)
            elif group == "theme":
                self.registry.apply_theme(payload, tid)
            elif group == "instrument":
                self.registry.apply_instrument(payload, tid)

            if key in STRUCTURAL_KEYS or self.panel.string_count != inst.store.group_a.num_strings:
                self._rebuild_string_fields(inst)
        return True

    def _rebuild_string_fields(self, inst: "FretboardInstance") -> None:
        """줄 수가 바뀌면 tick 을 기다리지 않고 줄별 필드를 바로 다시 만든다"""
        self.panel.rebuild_string_fields(inst.store.group_a.num_strings)
        values = self.panel.target_values(inst)
        for key, value in values.items():
            if key.startswith(_STRING_PREFIXES):
                self.panel.input_refs[key].value = value
