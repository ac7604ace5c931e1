from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path

import typer

from textbehind.config import PipelineSettings, load_config, write_default_config
from textbehind.constants import MODE_SEGMENT, VALID_MODES
from textbehind.decoders.image_decoder import decode_image
from textbehind.discover import discover_inputs
from textbehind.errors import TextBehindError
from textbehind.mask import generate_mask
from textbehind.models import Mask, TextSpec
from textbehind.naming import build_output_name
from textbehind.presets import list_builtin_presets, load_preset, normalize_preset_dict
from textbehind.render.compositor import overlay_debug
from textbehind.render.image_modes import resize_to_fit
from textbehind.segmentation import build_segmenter
from textbehind.session import OverlaySession

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Place text behind the subject of a photo.")
LOGGER = logging.getLogger("textbehind")


@dataclass(slots=True)
class _Result:
    source: Path
    status: str          # ok | skipped | failed
    output: Path | None = None
    elapsed: float = 0.0
    error: str | None = None


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _resolve_output_format(fmt: str) -> tuple[str, str]:
    f = fmt.lower()
    if f in {"jpeg", "jpg"}:
        return "jpg", "JPEG"
    if f == "png":
        return "png", "PNG"
    raise ValueError(f"output format must be jpeg/jpg or png, got: {fmt!r}")


def _resolve_mode(mode: str | None, cfg: dict) -> str:
    value = (mode or str(cfg.get("mode", "standard"))).lower()
    if value not in VALID_MODES:
        raise ValueError(f"mode must be one of {', '.join(sorted(VALID_MODES))}, got: {value!r}")
    return value


def _build_text_spec(
    cfg: dict,
    preset: str | None,
    *,
    text: str | None,
    font: str | None,
    size: float | None,
    color: str | None,
    x: float | None,
    y: float | None,
) -> TextSpec:
    base = normalize_preset_dict(dict(cfg.get("text") or {}))
    if preset:
        base = load_preset(preset, base=base)
    overrides = {"content": text, "font": font, "size": size, "color": color, "x": x, "y": y}
    return normalize_preset_dict({key: value for key, value in overrides.items() if value is not None}, base=base)


def _default_out_dir(input_path: Path) -> Path:
    return (input_path / "output") if input_path.is_dir() else (input_path.parent / "output")


@app.command()
def render(
    input_path: Path = typer.Argument(..., exists=True, resolve_path=True),
    out: Path | None = typer.Option(None, "--out", help="Output directory."),
    recursive: bool = typer.Option(False, "--recursive", help="Recursively scan input directories."),
    text: str | None = typer.Option(None, "--text", help=r"Text content; use \n for line breaks."),
    font: str | None = typer.Option(None, "--font", help="Font family name or font file path."),
    size: float | None = typer.Option(None, "--size", min=1, help="Font size in pixels."),
    color: str | None = typer.Option(None, "--color", help="Text color, e.g. #ffffff or #ffffff80."),
    x: float | None = typer.Option(None, "--x", min=0, max=100, help="Anchor x in percent of width."),
    y: float | None = typer.Option(None, "--y", min=0, max=100, help="Anchor y in percent of height."),
    preset: str | None = typer.Option(None, "--preset", help="Built-in preset name or preset file path."),
    mode: str | None = typer.Option(None, "--mode", help="standard|fast|segment"),
    cutout: Path | None = typer.Option(None, "--cutout", exists=True, dir_okay=False, help="Pre-computed cutout for segment mode."),
    max_dimension: int | None = typer.Option(None, "--max-dimension", min=1, help="Bound the long edge before processing."),
    edge_threshold: float | None = typer.Option(None, "--edge-threshold", min=0),
    alpha_threshold: int | None = typer.Option(None, "--alpha-threshold", min=0, max=255),
    dilate_iterations: int | None = typer.Option(None, "--dilate", min=0, help="Dilation iterations for edge modes."),
    output_format: str | None = typer.Option(None, "--format", help="Output format: png|jpeg"),
    quality: int | None = typer.Option(None, "--quality", min=1, max=100),
    name_template: str | None = typer.Option(None, "--name", help='Output filename template, e.g. "{stem}__overlay.{ext}"'),
    skip_existing: bool | None = typer.Option(None, "--skip-existing/--no-skip-existing"),
    mask_overlay: bool = typer.Option(False, "--mask-overlay", help="Also write the composite with the mask drawn on top."),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render text behind the detected subject of each input image."""
    _setup_logging(log_level)
    cfg = load_config()

    try:
        out_ext, pil_format = _resolve_output_format(output_format or str(cfg.get("output_format", "png")))
        mode_val = _resolve_mode(mode, cfg)
        spec = _build_text_spec(cfg, preset, text=text, font=font, size=size, color=color, x=x, y=y)
    except (ValueError, FileNotFoundError) as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    if mode_val == MODE_SEGMENT and cutout is not None and input_path.is_dir():
        typer.secho("--cutout applies to a single input file.", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    threshold_override = {"edge_threshold": edge_threshold}
    iteration_override = {"dilate_iterations": dilate_iterations}
    if mode_val == "fast":
        threshold_override = {"fast_edge_threshold": edge_threshold}
        iteration_override = {"fast_dilate_iterations": dilate_iterations}
    settings = PipelineSettings.from_config(
        cfg,
        mode=mode_val,
        max_dimension=max_dimension,
        alpha_threshold=alpha_threshold,
        phase_delay=0.0,
        **threshold_override,
        **iteration_override,
    )
    quality_val = int(quality if quality is not None else cfg.get("quality", 92))
    name_tmpl = name_template or str(cfg.get("name_template", "{stem}__overlay.{ext}"))
    skip = bool(cfg.get("skip_existing", True)) if skip_existing is None else skip_existing

    out_dir = out or _default_out_dir(input_path)
    files = discover_inputs(input_path, recursive=recursive, exclude=out_dir if input_path.is_dir() else None)
    if not files:
        typer.echo("No supported image files found.")
        raise typer.Exit(0)
    out_dir.mkdir(parents=True, exist_ok=True)
    segmenter = build_segmenter(cutout) if mode_val == MODE_SEGMENT else None

    def process_one(source: Path) -> _Result:
        t0 = time.perf_counter()
        try:
            output_name = build_output_name(name_tmpl, source, extension=out_ext, mode=mode_val, text=spec.content)
            output_file = out_dir / output_name
            if skip and output_file.exists():
                return _Result(source=source, status="skipped", output=output_file, elapsed=time.perf_counter() - t0)

            session = OverlaySession(settings, segmenter=segmenter, text=spec)
            result = asyncio.run(session.load(source, mode_val))
            if result.is_empty:
                raise TextBehindError("no foreground mask could be derived")
            result.save(output_file, fmt=pil_format, quality=quality_val)
            if mask_overlay:
                debug = overlay_debug(
                    result,
                    color=settings.mask_overlay_color,
                    opacity=settings.mask_overlay_opacity,
                )
                debug_file = output_file.with_name(f"{output_file.stem}__mask.png")
                debug.to_image().save(debug_file, format="PNG")
            return _Result(source=source, status="ok", output=output_file, elapsed=time.perf_counter() - t0)
        except (TextBehindError, OSError, ValueError) as exc:
            return _Result(source=source, status="failed", error=str(exc), elapsed=time.perf_counter() - t0)

    results: list[_Result] = []
    for f in files:
        r = process_one(f)
        results.append(r)
        if r.status == "ok":
            LOGGER.info("OK   %s -> %s  (%.2fs)", r.source.name, r.output.name if r.output else "-", r.elapsed)
        elif r.status == "skipped":
            LOGGER.info("SKIP %s (exists)", r.source.name)
        else:
            LOGGER.error("FAIL %s  %s", r.source.name, r.error)

    ok = sum(1 for r in results if r.status == "ok")
    skipped = sum(1 for r in results if r.status == "skipped")
    failed = [r for r in results if r.status == "failed"]
    typer.echo(f"Done. success={ok} skipped={skipped} failed={len(failed)}")
    if failed:
        typer.secho("Failures:", fg=typer.colors.RED)
        for r in failed:
            typer.secho(f"  {r.source}: {r.error}", fg=typer.colors.RED)
        raise typer.Exit(1)


@app.command("mask")
def mask_command(
    file: Path = typer.Argument(..., exists=True, resolve_path=True, dir_okay=False),
    out: Path | None = typer.Option(None, "--out", help="Output PNG path."),
    mode: str | None = typer.Option(None, "--mode", help="standard|fast|segment"),
    cutout: Path | None = typer.Option(None, "--cutout", exists=True, dir_okay=False, help="Pre-computed cutout for segment mode."),
    max_dimension: int | None = typer.Option(None, "--max-dimension", min=1),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Write the binary foreground mask (white = foreground) as a PNG."""
    _setup_logging(log_level)
    cfg = load_config()
    try:
        mode_val = _resolve_mode(mode, cfg)
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    settings = PipelineSettings.from_config(cfg, mode=mode_val, max_dimension=max_dimension, phase_delay=0.0)

    async def _build() -> Mask:
        canvas = resize_to_fit(decode_image(file), settings.max_dimension)
        if mode_val != MODE_SEGMENT:
            return generate_mask(canvas, mode_val, settings)
        session = OverlaySession(settings, segmenter=build_segmenter(cutout))
        await session.load(canvas, mode_val)
        return session.state.mask if session.state is not None else Mask.empty()

    try:
        mask = asyncio.run(_build())
    except TextBehindError as exc:
        typer.secho(f"Mask generation failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    if mask.is_empty:
        typer.secho("Mask generation failed: detection unavailable", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    target = out or file.with_name(f"{file.stem}__mask_{mode_val}.png")
    target.parent.mkdir(parents=True, exist_ok=True)
    mask.to_image().save(target, format="PNG")
    typer.echo(f"Mask written: {target}")


@app.command("presets")
def presets_command() -> None:
    for name in list_builtin_presets():
        spec = load_preset(name)
        typer.echo(f"{name:<12} {spec.font} {spec.size:g}px {spec.color}  {spec.content!r}")


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(force=force)
    typer.echo(f"Config initialized: {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
