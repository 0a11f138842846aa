from fretsync.domain.settings import FingeringEntry, SettingsStore, coerce_fingering
from fretsync.domain.styles import StyleRegistry, scope_custom_css


def test_group_b_idempotent():
    store = SettingsStore()
    partial = {"fretMarkers": {3: "single", 12: "double"}, "fretboardBindingDisplay": False,
               "cssVariables": {"--marker-dot-color": "#ffffff"}}
    first = store.apply_group_b(partial)
    once = store.snapshot().to_dict()
    second = store.apply_group_b(partial)
    assert first and not second
    assert store.snapshot().to_dict() == once


def test_missing_keys_keep_previous_values():
    store = SettingsStore()
    store.apply_group_a({"numStrings": 7, "dotTextMode": "finger"})
    store.apply_group_a({"stringType": "double"})
    a = store.group_a
    assert (a.num_strings, a.dot_text_mode, a.string_type) == (7, "finger", "double")


def test_num_strings_clamped_and_coerced():
    store = SettingsStore()
    store.apply_group_a({"numStrings": 50})
    assert store.group_a.num_strings == 20
    store.apply_group_a({"numStrings": "0"})
    assert store.group_a.num_strings == 1
    store.apply_group_a({"numStrings": True})
    assert store.group_a.num_strings == 1


def test_string_type_and_enum_values():
    store = SettingsStore()
    store.apply_group_a({"stringType": "2"})
    assert store.group_a.string_type == "double"
    ch = store.apply_group_a({"stringType": "triple", "dotTextMode": "bogus"})
    assert not ch
    assert store.group_a.string_type == "double"
    assert store.group_a.dot_text_mode == "note"


def test_change_flags():
    store = SettingsStore()
    ch = store.apply_group_a({"numStrings": 4})
    assert ch.structural and ch.dimension
    ch = store.apply_group_a({"cssVariables": {"--tuning-label-font-size": "14px"}})
    assert ch.keys == {"cssVariables"} and not ch.dimension
    ch = store.apply_group_a({"cssVariables": {"--dot-size": "30px"}})
    assert ch.dimension
    ch = store.apply_group_c({"startFret": 5})
    assert ch.window and not ch.fingering


def test_style_overrides_merge_per_key():
    store = SettingsStore()
    store.apply_group_b({"cssVariables": {"--marker-dot-color": "#111111"}})
    store.apply_group_b({"cssVariables": {"--main-fret-area-bg-image": "no-image"}})
    assert store.group_b.style_overrides == {"--marker-dot-color": "#111111",
                                             "--main-fret-area-bg-image": ""}


def test_document_key_aliases():
    store = SettingsStore()
    store.apply_group_b({"bindingDisplay": False, "styleOverrides": {"--dot-text-color": "#000"},
                         "customStyleText": ".x { color: red; }"})
    b = store.group_b
    assert b.binding_display is False
    assert b.style_overrides == {"--dot-text-color": "#000"}
    assert b.custom_style_text == ".x { color: red; }"


def test_fingering_entry_coercion():
    assert FingeringEntry.from_raw({"string": "2", "fret": "abc"}) == FingeringEntry(2, 0, 0)
    assert FingeringEntry.from_raw({"string": 1, "fret": -5}).fret == 0
    assert FingeringEntry.from_raw({"string": 1, "fret": "none"}).skipped
    assert FingeringEntry.from_raw({"fret": 3}) is None
    assert FingeringEntry.from_raw({"string": True, "fret": 3}) is None


def test_later_entry_for_same_string_wins():
    entries = coerce_fingering([{"string": 1, "fret": 1}, {"string": 2, "fret": 0},
                                {"string": 1, "fret": 3, "finger": 2}])
    assert sorted((e.string, e.fret, e.finger) for e in entries) == [(1, 3, 2), (2, 0, 0)]


def test_style_registry_scoping_and_defaults():
    styles = StyleRegistry()
    styles.set("a", "--dot-size", "30px")
    assert styles.get("a", "--dot-size") == "30px"
    assert styles.get("b", "--dot-size") == "24px"
    styles.set("a", "--dot-size", "")
    assert styles.get("a", "--dot-size") == "24px"
    styles.drop_target("a")
    assert styles.overrides("a") == {}


def test_custom_css_scoped_to_wrapper():
    css = ".dot, .label { color: red; }\n@media (max-width: 600px) { .dot { width: 10px; } }"
    out = scope_custom_css(css, "fb")
    assert "#fb_wrapper .dot, #fb_wrapper .label { color: red; }" in out
    assert "@media (max-width: 600px) {" in out
    assert "#fb_wrapper .dot { width: 10px; }" in out
    assert scope_custom_css("   ", "fb") == ""


def test_blockless_at_rule_does_not_swallow_next_rule():
    out = scope_custom_css("@import url(x.css); .a { color: red; }\n@charset 'utf-8';", "fb")
    assert out.split("\n") == ["@import url(x.css);", "#fb_wrapper .a { color: red; }", "@charset 'utf-8';"]
