import copy

import pytest
from PIL import Image, ImageDraw
from typer.testing import CliRunner

import textbehind.cli as cli
from textbehind.config import DEFAULT_CONFIG

runner = CliRunner()


@pytest.fixture(autouse=True)
def _default_config(monkeypatch) -> None:
    monkeypatch.setattr(cli, "load_config", lambda: copy.deepcopy(DEFAULT_CONFIG))


@pytest.fixture
def photo(tmp_path):
    image = Image.new("RGB", (64, 48), (0, 0, 0))
    ImageDraw.Draw(image).rectangle((20, 12, 44, 36), fill=(255, 255, 255))
    path = tmp_path / "photo.png"
    image.save(path)
    return path


def test_render_writes_overlay(tmp_path, photo) -> None:
    out_dir = tmp_path / "out"

    result = runner.invoke(cli.app, ["render", str(photo), "--out", str(out_dir), "--mode", "fast", "--text", "HI"])

    assert result.exit_code == 0, result.output
    output = out_dir / "photo__overlay.png"
    assert output.is_file()
    with Image.open(output) as written:
        assert written.size == (64, 48)
    assert "success=1" in result.output


def test_render_skips_existing(tmp_path, photo) -> None:
    out_dir = tmp_path / "out"
    args = ["render", str(photo), "--out", str(out_dir)]
    runner.invoke(cli.app, args)

    result = runner.invoke(cli.app, args)

    assert result.exit_code == 0
    assert "skipped=1" in result.output


def test_render_mask_overlay_and_jpeg(tmp_path, photo) -> None:
    out_dir = tmp_path / "out"

    result = runner.invoke(cli.app, ["render", str(photo), "--out", str(out_dir), "--format", "jpeg", "--mask-overlay"])

    assert result.exit_code == 0, result.output
    assert (out_dir / "photo__overlay.jpg").is_file()
    assert (out_dir / "photo__overlay__mask.png").is_file()


def test_render_segment_with_cutout(tmp_path, photo) -> None:
    cutout = Image.new("RGBA", (64, 48), (0, 0, 0, 0))
    ImageDraw.Draw(cutout).rectangle((20, 12, 44, 36), fill=(255, 255, 255, 255))
    cutout_path = tmp_path / "cutout.png"
    cutout.save(cutout_path)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        cli.app,
        ["render", str(photo), "--out", str(out_dir), "--mode", "segment", "--cutout", str(cutout_path)],
    )

    assert result.exit_code == 0, result.output
    assert (out_dir / "photo__overlay.png").is_file()


def test_render_rejects_bad_mode(tmp_path, photo) -> None:
    result = runner.invoke(cli.app, ["render", str(photo), "--out", str(tmp_path / "out"), "--mode", "magic"])

    assert result.exit_code == 1


def test_mask_command_writes_binary_png(tmp_path, photo) -> None:
    target = tmp_path / "mask.png"

    result = runner.invoke(cli.app, ["mask", str(photo), "--out", str(target), "--mode", "standard"])

    assert result.exit_code == 0, result.output
    with Image.open(target) as written:
        assert written.mode == "L"
        assert set(written.getdata()) <= {0, 255}
        assert written.getpixel((20, 24)) == 255


def test_presets_command_lists_builtins() -> None:
    result = runner.invoke(cli.app, ["presets"])

    assert result.exit_code == 0
    assert "headline" in result.output
