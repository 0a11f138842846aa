import math
import pytest

from fretsync.domain.geometry import FRET_RATIO, fret_heights
from fretsync.domain.notes import (DEFAULT_TUNING, interval_label, normalize_note, note_at_fret,
                                   resolve_tuning)
from fretsync.domain.styles import StyleRegistry
from fretsync.engine.registry import FretboardRegistry
from fretsync.errors import GeometryDeferred


def test_normalize_note_flats_and_case():
    assert normalize_note("bb") == "A#"
    assert normalize_note(" Eb ") == "D#"
    assert normalize_note("c#") == "C#"
    assert normalize_note("H") is None
    assert normalize_note("") is None


def test_note_at_fret_and_intervals():
    assert note_at_fret("E", 3) == "G"
    assert note_at_fret("B", 13) == "C"
    assert interval_label("C", "E") == "3"
    assert interval_label("C", "D", 14) == "9"
    assert interval_label("C", "??") is None


def test_default_tuning_starts_from_low_e():
    assert [DEFAULT_TUNING[s] for s in range(1, 7)] == ["E", "A", "D", "G", "B", "E"]
    assert resolve_tuning({2: "Bb"}, 3) == {1: "E", 2: "A#", 3: "D"}
    assert resolve_tuning(None, 8)[8] == "F#"


def test_fret_heights_monotonic_and_sum():
    h = fret_heights(350.0, [0, 1, 2, 3, 4])
    assert list(h) == [1, 2, 3, 4]
    assert h[1] > h[2] > h[3] > h[4]
    assert sum(h.values()) == pytest.approx(350.0)
    assert h[2] / h[1] == pytest.approx(FRET_RATIO)


@pytest.mark.parametrize("available", [0.0, -20.0, math.nan])
def test_fret_heights_deferred(available):
    with pytest.raises(GeometryDeferred):
        fret_heights(available, [1, 2, 3])


def test_geometry_writes_row_heights():
    reg = FretboardRegistry(StyleRegistry())
    inst = reg.init("fb")
    rows = inst.diagram.rows
    assert rows[0].height == pytest.approx(40.0)
    assert rows[1].height > rows[2].height > rows[4].height
    assert rows[5].height == 0.0
    assert reg.styles.get("fb", "--fret-row-height-1").endswith("px")


def test_geometry_deferred_then_retried():
    reg = FretboardRegistry(StyleRegistry())
    inst = reg.init("fb", {"settingsGroupA": {"cssVariables": {"--fretboard-height": "50px"}}})
    assert "fb" in reg.geometry.pending

    reg.styles.set("fb", "--fretboard-height", "420px")
    assert reg.geometry.retry_pending() == 1
    assert reg.geometry.pending == set()
    assert inst.diagram.rows[1].height > inst.diagram.rows[2].height


def test_vh_lengths_follow_viewport():
    reg = FretboardRegistry(StyleRegistry(), viewport_height=1000)
    reg.init("fb", {"settingsGroupA": {"cssVariables": {"--fretboard-height": "50vh"}}})
    assert reg.geometry.available_height("fb") == pytest.approx(500.0 - 30.0 - 40.0)
