from pathlib import Path

import pytest
import yaml

from fretsync.cli import main
from fretsync.config import AppConfig

ROOT = Path(__file__).resolve().parent.parent
EXAMPLE = str(ROOT / "config" / "example.yaml")


@pytest.fixture
def app_config(tmp_path):
    path = tmp_path / "app.yaml"
    data = {"app": {"log_level": "WARNING"},
            "presets": {"path": str(ROOT / "config" / "presets.yaml")}}
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


def test_export_prints_init_call(app_config, capsys):
    assert main(["--app-config", app_config, "export", "--config", EXAMPLE, "--target", "fb"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Fretboard.init({")
    assert "fretboardId: 'fb'" in out
    assert "settingsGroupC" in out


def test_export_then_import(app_config, capsys, tmp_path):
    main(["--app-config", app_config, "export", "--config", EXAMPLE, "--groups", "AC"])
    code = tmp_path / "board.js"
    code.write_text(capsys.readouterr().out, encoding="utf-8")
    saved = tmp_path / "board.yaml"
    assert main(["--app-config", app_config, "import", "--code", str(code), "--save", str(saved)]) == 0
    data = yaml.safe_load(saved.read_text(encoding="utf-8"))
    assert list(data) == ["settingsGroupA", "settingsGroupC"]
    assert data["settingsGroupC"]["root"] == "C"


def test_import_parse_error_exit_code(app_config, tmp_path):
    code = tmp_path / "bad.js"
    code.write_text("Fretboard.init({settingsGroupA: 5});", encoding="utf-8")
    assert main(["--app-config", app_config, "import", "--code", str(code)]) == 2
    code.write_text("Fretboard.init({settingsGroupA: " + "[" * 5000 + "]" * 5000 + "});", encoding="utf-8")
    assert main(["--app-config", app_config, "import", "--code", str(code)]) == 2


def test_render_writes_png(app_config, tmp_path):
    out = tmp_path / "board.png"
    assert main(["--app-config", app_config, "render", "--config", EXAMPLE, "--out", str(out)]) == 0
    assert out.exists()


def test_theme_export_and_preset_import(app_config, capsys, tmp_path):
    assert main(["--app-config", app_config, "theme-export", "--config", EXAMPLE, "--name", "myTheme"]) == 0
    code = tmp_path / "theme.js"
    code.write_text(capsys.readouterr().out, encoding="utf-8")
    assert main(["--app-config", app_config, "import", "--code", str(code), "--presets"]) == 0
    data = yaml.safe_load(capsys.readouterr().out)
    assert data["themes"]["myTheme"]["themeLabel"] == "My Theme"


def test_app_config_defaults_and_overrides(tmp_path):
    assert AppConfig.from_yaml(None) == AppConfig()
    assert AppConfig.from_yaml(str(tmp_path / "missing.yaml")).sync_guard == 0.1
    path = tmp_path / "app.yaml"
    path.write_text(yaml.safe_dump({"sync": {"edit_guard_ms": 500}, "app": {"log_level": "debug"}}),
                    encoding="utf-8")
    cfg = AppConfig.from_yaml(str(path))
    assert (cfg.sync_edit_guard, cfg.log_level, cfg.sync_period_ms) == (0.5, "DEBUG", 200)
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        AppConfig.from_yaml(str(path))
