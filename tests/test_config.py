import pytest

from textbehind.config import DEFAULT_CONFIG, PipelineSettings, load_config, write_default_config


def test_missing_config_returns_defaults(tmp_path) -> None:
    cfg = load_config(tmp_path / "missing.yaml")

    assert cfg == DEFAULT_CONFIG
    assert cfg is not DEFAULT_CONFIG


def test_config_merges_nested_sections(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("mode: fast\ntext:\n  size: 64\n", encoding="utf-8")

    cfg = load_config(path)

    assert cfg["mode"] == "fast"
    assert cfg["text"]["size"] == 64
    assert cfg["text"]["font"] == DEFAULT_CONFIG["text"]["font"]


def test_non_mapping_config_is_ignored(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    assert load_config(path) == DEFAULT_CONFIG


def test_write_default_config_keeps_existing(tmp_path) -> None:
    path = tmp_path / "Config" / "config.yaml"
    write_default_config(path)
    path.write_text("mode: segment\n", encoding="utf-8")

    write_default_config(path)
    assert load_config(path)["mode"] == "segment"

    write_default_config(path, force=True)
    assert load_config(path)["mode"] == "standard"


def test_settings_from_config_converts_milliseconds() -> None:
    cfg = dict(DEFAULT_CONFIG, drag_delay_ms=120, phase_delay_ms=0)

    settings = PipelineSettings.from_config(cfg, max_dimension=None, alpha_threshold=10)

    assert settings.drag_delay == pytest.approx(0.12)
    assert settings.phase_delay == 0.0
    assert settings.max_dimension == 1200
    assert settings.alpha_threshold == 10


def test_settings_per_mode_lookup() -> None:
    settings = PipelineSettings(edge_threshold=40, fast_edge_threshold=20, dilate_iterations=3, fast_dilate_iterations=0)

    assert settings.threshold_for("standard") == 40
    assert settings.threshold_for("fast") == 20
    assert settings.iterations_for("fast") == 0
    assert settings.iterations_for("standard") == 3


@pytest.mark.parametrize("kwargs", [{"mode": "magic"}, {"max_dimension": 0}, {"dilate_iterations": -1}])
def test_settings_validation(kwargs) -> None:
    with pytest.raises(ValueError):
        PipelineSettings(**kwargs)
