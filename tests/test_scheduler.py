import asyncio
import logging

from fretsync.config import AppConfig
from fretsync.domain.styles import StyleRegistry
from fretsync.engine.registry import FretboardRegistry
from fretsync.sync.scheduler import SyncScheduler
from fretsync.sync.state import SyncMode, SyncState


def _setup(now):
    """now: [t] 리스트. 테스트가 시간을 직접 움직인다"""
    reg = FretboardRegistry(StyleRegistry())
    reg.init("fb")
    sch = SyncScheduler(reg, "fb", clock=lambda: now[0])
    assert sch.attach()
    return reg, sch


def _fingering(reg):
    return {(e.string, e.fret, e.finger) for e in reg.get_fingering_from_dot_state("fb")}


def test_state_guards_release_independently():
    st = SyncState()
    st.begin_edit("root", 0.0, 0.3)
    st.begin_write(0.0, 0.1)
    assert st.mode is SyncMode.PROGRAMMATIC_WRITE
    st.release_due(0.15)
    assert st.mode is SyncMode.USER_EDITING and st.editing_key == "root"
    st.release_due(0.3)
    assert st.mode is SyncMode.IDLE
    with st.hold():
        assert st.is_syncing
    assert not st.is_syncing


def test_tick_writes_fingering_after_click():
    now = [0.0]
    reg, sch = _setup(now)
    assert sch.panel.value("fingering.1.fret") == ""
    reg.click("fb", 1, 3)
    assert sch.tick() > 0
    assert sch.panel.value("fingering.1.fret") == "3"
    assert sch.tick() == 0


def test_focused_field_is_not_overwritten():
    now = [0.0]
    reg, sch = _setup(now)
    sch.panel.focus("fingering.1.fret")
    reg.click("fb", 1, 3)
    sch.tick()
    assert sch.panel.value("fingering.1.fret") == ""
    sch.panel.blur()
    sch.tick()
    assert sch.panel.value("fingering.1.fret") == "3"


def test_typed_edit_blocks_only_its_field():
    now = [0.0]
    reg, sch = _setup(now)
    assert sch.on_field_change("root", "D")
    assert reg.get_settings_group_c("fb").root == "D"

    now[0] = 0.1
    reg.update_settings_group_c({"root": "E", "name": "Em"}, "fb")
    sch.tick()
    assert sch.skipped == 0
    assert sch.panel.value("root") == "D"
    assert sch.panel.value("name") == "Em"

    now[0] = 0.4
    sch.tick()
    assert sch.panel.value("root") == "E"


def test_select_edit_skips_whole_ticks():
    now = [0.0]
    reg, sch = _setup(now)
    sch.on_field_change("dotTextMode", "finger")
    assert reg.get_settings_group_a("fb").dot_text_mode == "finger"

    now[0] = 0.05
    assert sch.tick() == 0
    assert (sch.ticks, sch.skipped) == (0, 1)

    now[0] = 0.15
    sch.tick()
    assert sch.ticks == 1


def test_user_edits_are_never_dropped():
    now = [0.0]
    reg, sch = _setup(now)
    sch.on_field_change("dotTextMode", "finger")
    now[0] = 0.01
    sch.on_field_change("showFretIndicators", "all")
    sch.on_field_change("name", "Am")
    a = reg.get_settings_group_a("fb")
    assert (a.dot_text_mode, a.show_fret_indicators) == ("finger", "all")
    assert reg.get_settings_group_c("fb").name == "Am"


def test_structural_edit_rebuilds_string_fields():
    now = [0.0]
    reg, sch = _setup(now)
    sch.on_field_change("numStrings", "4")
    assert sch.panel.string_count == 4
    assert "tuning.5" not in sch.panel.input_refs
    assert sch.panel.value("tuning.4") == "G"

    now[0] = 1.0
    reg.update_settings_group_a({"numStrings": 8}, "fb")
    sch.tick()
    assert sch.panel.string_count == 8
    assert sch.panel.value("tuning.8") == "F#"


def test_fingering_fields_edit_the_diagram():
    now = [0.0]
    reg, sch = _setup(now)
    sch.on_field_change("fingering.2.fret", "2")
    assert _fingering(reg) == {(2, 2, 0)}
    sch.on_field_change("fingering.2.finger", "1")
    assert _fingering(reg) == {(2, 2, 1)}
    sch.on_field_change("fingering.2.fret", "x")
    assert _fingering(reg) == {(2, -1, 0)}
    sch.on_field_change("fingering.2.fret", "")
    assert _fingering(reg) == set()


def test_panel_style_and_preset_fields():
    now = [0.0]
    reg, sch = _setup(now)
    sch.on_field_change("cssB.--main-fret-area-bg-image", "no-image")
    assert reg.get_settings_group_b("fb").style_overrides["--main-fret-area-bg-image"] == ""
    sch.on_field_change("stringColor.7", "#ff0000")
    assert reg.get_settings_group_b("fb").style_overrides["--string-7-color"] == "#ff0000"
    sch.on_field_change("fretMarker.3", "")
    assert 3 not in reg.get_settings_group_b("fb").fret_markers
    assert sch.on_field_change("noSuchField", "1") is False


def test_from_config_uses_sync_settings():
    reg = FretboardRegistry(StyleRegistry())
    reg.init("fb")
    cfg = AppConfig(sync_period_ms=100, sync_guard_ms=80, sync_edit_guard_ms=250)
    sch = SyncScheduler.from_config(reg, "fb", cfg)
    assert (sch.period, sch.guard, sch.edit_guard) == (0.1, 0.08, 0.25)


def test_teardown_cancels_sync_loop():
    async def run():
        reg = FretboardRegistry(StyleRegistry())
        reg.init("fb")
        sch = SyncScheduler(reg, "fb", period=0.01)
        sch.attach()
        task = sch.start()
        await asyncio.sleep(0.05)
        assert sch.running and sch.ticks > 0
        reg.remove("fb")
        await asyncio.sleep(0.02)
        return sch, task

    sch, task = asyncio.run(run())
    assert task.cancelled()
    assert not sch.running


def test_failed_tick_is_logged_and_loop_continues(caplog):
    calls = []

    async def run():
        reg = FretboardRegistry(StyleRegistry())
        reg.init("fb")
        sch = SyncScheduler(reg, "fb", period=0.01)
        sch.attach()

        def flaky_tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("panel gone")
            return 0

        sch.tick = flaky_tick
        sch.start()
        await asyncio.sleep(0.08)
        running = sch.running
        sch.stop()
        return running

    with caplog.at_level(logging.ERROR):
        assert asyncio.run(run())
    assert len(calls) > 1
    assert "sync tick failed for fb" in caplog.text
