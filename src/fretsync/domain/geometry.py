from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Dict, Iterable, Set

import numpy as np

from ..errors import GeometryDeferred
from .styles import StyleRegistry, parse_length

if TYPE_CHECKING:
    from ..engine.instance import FretboardInstance

log = logging.getLogger(__name__)

# 12-TET: 한 프렛 올라갈 때마다 남은 현 길이가 2^(-1/12) 배
FRET_RATIO = 2.0 ** (-1.0 / 12.0)


def fret_heights(available: float, frets: Iterable[int]) -> Dict[int, float]:
    """
    보이는 프렛(f>0)마다 base * r^f 높이를 준다.
    base = available / Σ r^f  →  합은 항상 available.
    계산이 불가능하면 GeometryDeferred.
    """
    fs = np.array(sorted(int(f) for f in frets if int(f) > 0), dtype=np.float64)
    if not np.isfinite(available) or available <= 0:
        raise GeometryDeferred(f"available height {available!r} is not positive")
    if fs.size == 0:
        return {}

    weights = np.power(FRET_RATIO, fs)
    total = float(weights.sum())
    if not np.isfinite(total) or total <= 0:
        raise GeometryDeferred(f"fret ratio sum {total!r} is unusable")

    heights = weights * (available / total)
    if not np.all(np.isfinite(heights)) or np.any(heights <= 0):
        raise GeometryDeferred("computed fret heights are not positive")
    return {int(f): float(h) for f, h in zip(fs, heights)}


class GeometryEngine:
    """레이아웃 값(스타일 레지스트리)을 읽어 행 높이를 계산하고 다시 써 넣는다"""

    def __init__(self, styles: StyleRegistry, viewport_height: float = 900.0) -> None:
        self.styles = styles
        self.viewport_height = float(viewport_height)
        self._pending: Set[str] = set()
        self._instances: Dict[str, "FretboardInstance"] = {}

    def _px(self, target_id: str, key: str) -> float:
        val = parse_length(self.styles.get(target_id, key), self.viewport_height)
        return float("nan") if val is None else val

    def available_height(self, target_id: str) -> float:
        return (self._px(target_id, "--fretboard-height")
                - self._px(target_id, "--header-height")
                - self._px(target_id, "--fret-0-height"))

    def apply(self, instance: "FretboardInstance") -> bool:
        """성공하면 True. 실패하면 재시도 대기열에 넣고 아무 값도 쓰지 않는다"""
        tid = instance.target_id
        diagram = instance.diagram
        try:
            heights = fret_heights(self.available_height(tid), diagram.visible_frets())
        except GeometryDeferred as e:
            log.debug("geometry deferred for %s: %s", tid, e)
            self._pending.add(tid)
            self._instances[tid] = instance
            return False

        fret0 = self._px(tid, "--fret-0-height")
        for f, row in enumerate(diagram.rows):
            if f == 0:
                row.height = fret0
            else:
                row.height = heights.get(f, 0.0)
            self.styles.set(tid, f"--fret-row-height-{f}", f"{row.height:.3f}px")

        self._pending.discard(tid)
        self._instances.pop(tid, None)
        return True

    @property
    def pending(self) -> Set[str]:
        return set(self._pending)

    def retry_pending(self) -> int:
        """레이아웃이 안정됐을 수 있으니 대기 중인 타깃을 다시 계산"""
        done = 0
        for tid in list(self._pending):
            inst = self._instances.get(tid)
            if inst is not None and self.apply(inst):
                done += 1
        return done

    def forget(self, target_id: str) -> None:
        self._pending.discard(target_id)
        self._instances.pop(target_id, None)
