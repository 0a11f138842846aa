from fretsync.codec.config_codec import encode_full
from fretsync.domain.settings import FingeringEntry
from fretsync.domain.styles import StyleRegistry
from fretsync.engine.reconciler import (derive_fingering, fingering_key, is_exportable_entry,
                                        is_valid_entry, reconcile)
from fretsync.engine.registry import FretboardRegistry


def _new(config=None):
    reg = FretboardRegistry(StyleRegistry())
    return reg, reg.init("fb", config)


def _triples(entries):
    return {(e.string, e.fret, e.finger) for e in entries}


def test_single_dot_scenario():
    reg, _ = _new()
    reg.update_settings_group_c({"fingering": [{"string": 1, "fret": 3, "finger": 2}]}, "fb")
    assert reg.get_fingering_from_dot_state("fb") == [FingeringEntry(1, 3, 2)]


def test_round_trip_keeps_valid_subset():
    entries = [
        {"string": 1, "fret": 3, "finger": 2},
        {"string": 2, "fret": -1, "finger": 0},
        {"string": 3, "fret": None, "finger": 0},
        {"string": 4, "fret": "none", "finger": "none"},
        {"string": 5, "fret": 0, "finger": 0},
    ]
    _, inst = _new({"settingsGroupC": {"fingering": entries}})
    assert _triples(derive_fingering(inst)) == {(1, 3, 2), (2, -1, 0), (5, 0, 0)}


def test_muted_string_derived_but_not_exported():
    _, inst = _new({"settingsGroupC": {"fingering": [{"string": 6, "fret": -1, "finger": 0}]}})
    assert _triples(inst.snapshot().group_c.fingering) == {(6, -1, 0)}
    assert "settingsGroupC" not in encode_full(inst.snapshot(), "fb")

    inst.click(1, 2)
    text = encode_full(inst.snapshot(), "fb")
    assert "settingsGroupC" in text
    assert "fret: -1" not in text


def test_num_strings_shrink_then_grow():
    dots = [{"string": s, "fret": 2, "finger": 1} for s in range(1, 7)]
    reg, inst = _new({"settingsGroupC": {"fingering": dots}})
    reg.update_settings_group_a({"numStrings": 4}, "fb")
    assert {e.string for e in derive_fingering(inst)} == {1, 2, 3, 4}
    reg.update_settings_group_a({"numStrings": 6}, "fb")
    assert {e.string for e in derive_fingering(inst)} == {1, 2, 3, 4}
    assert {e.string for e in inst.store.group_c.fingering} == {1, 2, 3, 4}


def test_string_type_change_keeps_dots():
    dots = [{"string": 1, "fret": 3, "finger": 2}, {"string": 4, "fret": 0, "finger": 0},
            {"string": 6, "fret": -1, "finger": 0}]
    reg, inst = _new({"settingsGroupC": {"fingering": dots}})
    before = _triples(derive_fingering(inst))
    rows_before = inst.diagram.rows
    reg.update_settings_group_a({"stringType": "double"}, "fb")
    assert inst.diagram.string_type == "double"
    assert inst.diagram.rows is not rows_before
    assert _triples(derive_fingering(inst)) == before == {(1, 3, 2), (4, 0, 0), (6, -1, 0)}


def test_unresolvable_row_is_skipped():
    _, inst = _new({"settingsGroupC": {"fingering": [{"string": 1, "fret": 3}, {"string": 2, "fret": 1}]}})
    inst.diagram.rows[3].row_id = "somewhere_else"
    assert _triples(derive_fingering(inst)) == {(2, 1, 0)}


def test_reconcile_detects_changes_only():
    reg, inst = _new()
    assert reconcile(inst) is False
    assert reg.click("fb", 3, 2) is True
    assert reconcile(inst) is False
    assert inst.store.group_c.fingering == [FingeringEntry(3, 2, 0)]


def test_open_string_click_cycle():
    _, inst = _new()
    inst.click(1, 0)
    assert _triples(derive_fingering(inst)) == {(1, 0, 0)}
    inst.click(1, 0)
    assert _triples(derive_fingering(inst)) == {(1, -1, 0)}
    inst.click(1, 0)
    assert derive_fingering(inst) == []


def test_click_keeps_one_mark_per_string():
    _, inst = _new()
    inst.click(2, 1)
    inst.click(2, 3)
    assert _triples(derive_fingering(inst)) == {(2, 3, 0)}
    inst.click(2, 3)
    assert derive_fingering(inst) == []


def test_entry_validity():
    assert is_valid_entry({"fret": -1})
    assert not is_valid_entry({"fret": True})
    assert not is_valid_entry({"fret": "3"})
    assert not is_valid_entry({"fret": -2})
    assert is_exportable_entry({"fret": 0})
    assert not is_exportable_entry({"fret": -1})


def test_fingering_key_is_order_independent():
    a = [FingeringEntry(2, 1, 0), FingeringEntry(1, 3, 2)]
    assert fingering_key(a) == fingering_key(list(reversed(a)))
