from __future__ import annotations
from typing import Dict, Mapping, Optional

CHROMATIC_SCALE = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# 1번줄(가장 굵은 줄)부터. 11번 이후는 G#에서 5도씩 이어간다.
DEFAULT_TUNING: Dict[int, str] = {
    1: "E", 2: "A", 3: "D", 4: "G", 5: "B",
    6: "E", 7: "B", 8: "F#", 9: "C#", 10: "G#",
    11: "D#", 12: "A#", 13: "F", 14: "C", 15: "G",
    16: "D", 17: "A", 18: "E", 19: "B", 20: "F#",
}

MAX_STRINGS = 20

_FLATS = {"Db": "C#", "Eb": "D#", "Gb": "F#", "Ab": "G#", "Bb": "A#", "Cb": "B", "Fb": "E"}

INTERVALS = ["R", "b2", "2", "b3", "3", "4", "b5", "5", "b6", "6", "b7", "7"]
# 12프렛을 넘으면 텐션 표기로 바뀐다
COMPOUND_INTERVALS = ["8", "b9", "9", "#9", "11", "11", "#11", "5", "b6", "6", "b7", "7"]


def normalize_note(note) -> Optional[str]:
    """'bb', ' Eb ' 같은 입력을 샵 표기로 정리. 모르는 음이면 None"""
    if note is None:
        return None
    s = str(note).strip()
    if not s:
        return None
    key = s[0].upper() + s[1:].replace("\u266f", "#").replace("\u266d", "b")
    if key in CHROMATIC_SCALE:
        return key
    return _FLATS.get(key)


def note_index(note) -> int:
    n = normalize_note(note)
    return CHROMATIC_SCALE.index(n) if n is not None else -1


def note_at_fret(open_note, fret: int) -> Optional[str]:
    idx = note_index(open_note)
    if idx < 0:
        return None
    return CHROMATIC_SCALE[(idx + int(fret)) % 12]


def resolve_tuning(tuning: Optional[Mapping[int, str]], num_strings: int) -> Dict[int, str]:
    """
    tuning=None 이면 기본 테이블 그대로.
    명시된 줄만 덮어쓰고, 나머지는 기본 테이블에서 채운다.
    """
    out: Dict[int, str] = {}
    explicit = dict(tuning or {})
    for s in range(1, int(num_strings) + 1):
        val = explicit.get(s, explicit.get(str(s)))
        out[s] = normalize_note(val) or DEFAULT_TUNING.get(s, "E")
    return out


def interval_label(root, note, fret: int = 0) -> Optional[str]:
    r = note_index(root)
    n = note_index(note)
    if r < 0 or n < 0:
        return None
    semis = (n - r) % 12
    if int(fret) > 12:
        return COMPOUND_INTERVALS[semis]
    return INTERVALS[semis]
