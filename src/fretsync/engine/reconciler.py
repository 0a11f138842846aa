from __future__ import annotations
import json
import logging
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Union

from ..domain.settings import FingeringEntry, coerce_fingering

if TYPE_CHECKING:
    from .instance import FretboardInstance

log = logging.getLogger(__name__)

EntryLike = Union[FingeringEntry, Mapping[str, Any]]


def _fret_of(entry: EntryLike) -> Any:
    return entry.fret if isinstance(entry, FingeringEntry) else entry.get("fret")


def is_valid_entry(entry: EntryLike) -> bool:
    """다이어그램에 그릴 수 있는 항목: fret 이 int(불리언 제외) 이고 -1 이상"""
    fret = _fret_of(entry)
    return isinstance(fret, int) and not isinstance(fret, bool) and fret >= -1


def is_exportable_entry(entry: EntryLike) -> bool:
    """코드 내보내기 대상. 뮤트(-1)는 제외"""
    return is_valid_entry(entry) and _fret_of(entry) >= 0


def _sort_key(e: FingeringEntry):
    fret = e.fret if isinstance(e.fret, int) else -2
    return (e.string, fret)


def fingering_key(entries: Iterable[FingeringEntry]) -> str:
    """줄 번호 기준으로 정렬한 JSON. 변경 감지용"""
    ordered = sorted(entries, key=_sort_key)
    return json.dumps([e.to_dict() for e in ordered], separators=(",", ":"))


def _parse_finger(label) -> int:
    try:
        return max(0, int(str(label).strip()))
    except (TypeError, ValueError):
        return 0


def derive_fingering(instance: "FretboardInstance") -> List[FingeringEntry]:
    """
    다이어그램(활성 마크)에서 운지 목록을 만든다.
    - 행 id에서 프렛을 못 읽으면 그 행은 건너뜀
    - 활성 점: {string, fret, finger}
    - 0프렛 활성 뮤트: {string, -1, 0}
    """
    diagram = instance.diagram
    out: List[FingeringEntry] = []
    for row in diagram.rows:
        fret = diagram.fret_of(row.row_id)
        if fret is None:
            log.debug("skipping unresolvable row %r", row.row_id)
            continue
        for cell in row.cells:
            if cell.dot.active:
                out.append(FingeringEntry(cell.string, fret, _parse_finger(cell.dot.finger)))
            elif fret == 0 and cell.muted.active:
                out.append(FingeringEntry(cell.string, -1, 0))
    return out


def clear_fingering(instance: "FretboardInstance") -> None:
    instance.diagram.clear()


def apply_fingering(instance: "FretboardInstance", entries: Iterable[EntryLike]) -> int:
    """기존 마크를 지우고 entries 를 다이어그램에 찍는다. 찍은 개수를 돌려준다"""
    diagram = instance.diagram
    clear_fingering(instance)
    placed = 0
    for e in coerce_fingering(list(entries)):
        if e.skipped or not is_valid_entry(e):
            continue
        if e.muted:
            ok = diagram.mark_muted(e.string)
        else:
            finger = None if e.finger in (0, "none") else str(e.finger)
            ok = diagram.mark_dot(e.string, e.fret, finger)
        if not ok:
            log.debug("fingering entry outside diagram: %s", e)
        placed += int(ok)
    diagram.update_intervals(instance.store.group_c.root)
    return placed


def reconcile(instance: "FretboardInstance") -> bool:
    """
    다이어그램에서 다시 뽑은 운지가 캐시와 다를 때만 Group C 에 반영.
    바뀌었으면 True.
    """
    derived = derive_fingering(instance)
    key = fingering_key(derived)
    if key == instance.last_fingering_state:
        return False
    instance.store.group_c.fingering = derived
    instance.last_fingering_state = key
    return True
