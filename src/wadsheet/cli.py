from __future__ import annotations

import logging
from pathlib import Path
import re

import msgspec
import typer
from PIL import Image, UnidentifiedImageError

from lumps import wad as wad_mod
from lumps.palette import Palette, PaletteError, palette_from_wad
from lumps.report import ValidationReport, format_report

from .config import ConfigError, resolve_pack_config
from .packer import PackingOverflowError, pack, pack_sheets
from .pipeline import collect_sprites, rebuild_wad, sprite_images
from .placement import PlacementError, load_manifest, manifest_from_pack, pack_result_from_manifest, save_manifest
from .raster import DEFAULT_ALPHA_THRESHOLD, extract_sprites, render_sheet
from .validate import validate_against_persisted, validate_packing

app = typer.Typer(add_completion=False)

_UNSAFE_CHAR_RE = re.compile(r"[^A-Za-z0-9_\-]")


def _fail(message: str) -> typer.Exit:
    typer.echo(message, err=True)
    return typer.Exit(code=1)


def _safe_filename(name: str) -> str:
    # Sprite names such as VILE\1 and VILE[1 are legal lump names but not portable file names.
    return _UNSAFE_CHAR_RE.sub(lambda match: f"%{ord(match.group(0)):02X}", name) or "_"


def _load_wad(path: Path) -> wad_mod.Wad:
    try:
        return wad_mod.load(path)
    except FileNotFoundError as exc:
        raise _fail(f"wad not found: {path}") from exc
    except wad_mod.FormatError as exc:
        raise _fail(f"invalid wad {path}: {exc}") from exc


def _palette(wad: wad_mod.Wad) -> Palette:
    try:
        return palette_from_wad(wad)
    except PaletteError as exc:
        raise _fail(f"invalid palette: {exc}") from exc


def _echo_report(report: ValidationReport, title: str, *, details: bool = False) -> None:
    typer.echo(format_report(report, title=title, show_details=details), err=not report.valid)


@app.callback()
def cli(verbose: bool = typer.Option(False, "--verbose", "-v", help="enable debug logging")) -> None:
    """DOOM WAD sprite sheet round trip."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command("inspect")
def cmd_inspect(
    wad_path: Path = typer.Argument(..., help="wad file"),
    as_json: bool = typer.Option(False, "--json", help="print metadata and validation as JSON"),
) -> None:
    """Print the lump directory and validation findings of a wad."""
    wad = _load_wad(wad_path)
    report = wad_mod.validate(wad)
    if as_json:
        payload = {
            "metadata": wad_mod.metadata(wad),
            "validation": {"valid": report.valid, "errors": report.errors, "warnings": report.warnings},
        }
        typer.echo(msgspec.json.format(msgspec.json.encode(payload), indent=2).decode("utf-8"))
        return
    typer.echo(wad_mod.format_structure(wad))
    typer.echo("")
    _echo_report(report, "WAD validation")


@app.command("extract")
def cmd_extract(
    wad_path: Path = typer.Argument(..., help="wad file"),
    out_dir: Path = typer.Argument(..., help="output directory for PNG files"),
    namespace: str | None = typer.Option(None, "--namespace", help="marker prefix, e.g. S for sprites"),
    names: list[str] | None = typer.Option(None, "--name", help="lump name (repeatable)"),
) -> None:
    """Decode picture lumps to PNG files."""
    wad = _load_wad(wad_path)
    palette = _palette(wad)
    collection = collect_sprites(wad, names=names or None, namespace=namespace)
    if not collection.sprites:
        raise _fail(f"no picture lumps found in {wad_path}")
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, image in sprite_images(collection.sprites, palette).items():
        image.save(out_dir / f"{_safe_filename(name)}.png")
    for skipped in collection.skipped:
        typer.echo(f"skipped {skipped.name}: {skipped.reason}", err=True)
    typer.echo(f"extracted {len(collection.sprites)} pictures")


@app.command("pack")
def cmd_pack(
    wad_path: Path = typer.Argument(..., help="wad file"),
    out_dir: Path = typer.Argument(..., help="output directory for sheets and manifests"),
    namespace: str | None = typer.Option(None, "--namespace", help="marker prefix, e.g. S for sprites"),
    names: list[str] | None = typer.Option(None, "--name", help="lump name (repeatable)"),
    config: Path | None = typer.Option(None, "--config", help="pack config JSON"),
    target_size: int | None = typer.Option(None, "--target-size", min=1, help="preferred canvas side"),
    max_size: int | None = typer.Option(None, "--max-size", min=1, help="largest canvas side"),
    guidelines: bool = typer.Option(True, "--guidelines/--no-guidelines", help="draw guideline rectangles"),
    labels: bool = typer.Option(True, "--labels/--no-labels", help="draw sprite name labels"),
) -> None:
    """Pack picture lumps into sprite sheets with placement manifests."""
    try:
        options, layout = resolve_pack_config(config, target_size=target_size, max_size=max_size)
    except ConfigError as exc:
        raise _fail(str(exc)) from exc
    wad = _load_wad(wad_path)
    palette = _palette(wad)
    collection = collect_sprites(wad, names=names or None, namespace=namespace)
    if not collection.sprites:
        raise _fail(f"no picture lumps found in {wad_path}")
    for skipped in collection.skipped:
        typer.echo(f"skipped {skipped.name}: {skipped.reason}", err=True)

    try:
        results = pack_sheets(collection.sprites, options, layout)
    except PackingOverflowError as exc:
        raise _fail(str(exc)) from exc

    images = sprite_images(collection.sprites, palette)
    out_dir.mkdir(parents=True, exist_ok=True)
    report = ValidationReport()
    for index, result in enumerate(results):
        stem = f"sheet_{index:02d}"
        render_sheet(result, images, guidelines=guidelines, labels=labels).save(out_dir / f"{stem}.png")
        save_manifest(manifest_from_pack(result), out_dir / f"{stem}.json")
        report = report.merge(validate_packing(result))
        typer.echo(f"{stem}: {len(result.items)} sprites on {result.canvas_width}x{result.canvas_height}")

    _echo_report(report, "Packing validation")
    if not report.valid:
        raise typer.Exit(code=1)


@app.command("validate")
def cmd_validate(
    manifest_path: Path = typer.Argument(..., help="sheet manifest JSON"),
    sheet: Path | None = typer.Option(None, "--sheet", help="edited sheet PNG to check against the manifest"),
    config: Path | None = typer.Option(None, "--config", help="pack config JSON used for packing"),
    details: bool = typer.Option(False, "--details", help="print per-sprite coordinates"),
) -> None:
    """Check a manifest's geometry and, optionally, an edited sheet's size."""
    try:
        _, layout = resolve_pack_config(config)
        manifest = load_manifest(manifest_path)
    except (ConfigError, PlacementError) as exc:
        raise _fail(str(exc)) from exc
    except FileNotFoundError as exc:
        raise _fail(f"manifest not found: {manifest_path}") from exc

    report = validate_packing(pack_result_from_manifest(manifest, layout))
    if sheet is not None:
        try:
            with Image.open(sheet) as image:
                size = image.size
        except (FileNotFoundError, UnidentifiedImageError) as exc:
            raise _fail(f"cannot read sheet {sheet}: {exc}") from exc
        if size != (manifest.canvas_width, manifest.canvas_height):
            report = report.extend(
                warnings=[
                    f"sheet is {size[0]}x{size[1]}, manifest canvas is "
                    f"{manifest.canvas_width}x{manifest.canvas_height}; extraction will rescale"
                ]
            )
    _echo_report(report, "Manifest validation", details=details)
    if not report.valid:
        raise typer.Exit(code=1)


@app.command("rebuild")
def cmd_rebuild(
    wad_path: Path = typer.Argument(..., help="source wad file"),
    sheet: Path = typer.Argument(..., help="edited sheet PNG"),
    manifest_path: Path = typer.Argument(..., help="sheet manifest JSON"),
    out_wad: Path = typer.Argument(..., help="output wad file"),
    namespace: str | None = typer.Option(None, "--namespace", help="marker prefix used when packing"),
    config: Path | None = typer.Option(None, "--config", help="pack config JSON used for packing"),
    target_size: int | None = typer.Option(None, "--target-size", min=1, help="preferred canvas side"),
    max_size: int | None = typer.Option(None, "--max-size", min=1, help="largest canvas side"),
    alpha_threshold: int = typer.Option(
        DEFAULT_ALPHA_THRESHOLD, "--alpha-threshold", min=0, max=256, help="alpha below this is transparent"
    ),
    force: bool = typer.Option(False, "--force", help="rebuild even if the layout no longer matches"),
) -> None:
    """Write edited sheet sprites back into a copy of the wad."""
    try:
        options, layout = resolve_pack_config(config, target_size=target_size, max_size=max_size)
        manifest = load_manifest(manifest_path)
    except (ConfigError, PlacementError) as exc:
        raise _fail(str(exc)) from exc
    except FileNotFoundError as exc:
        raise _fail(f"manifest not found: {manifest_path}") from exc
    wad = _load_wad(wad_path)
    palette = _palette(wad)

    collection = collect_sprites(wad, names=[record.name for record in manifest.placements], namespace=namespace)
    try:
        result = pack(collection.sprites, options, layout)
    except PackingOverflowError as exc:
        raise _fail(str(exc)) from exc
    report = validate_against_persisted(result, manifest.placements)
    if (result.canvas_width, result.canvas_height) != (manifest.canvas_width, manifest.canvas_height):
        report = report.extend(
            errors=[
                f"re-packed canvas {result.canvas_width}x{result.canvas_height} does not match "
                f"manifest canvas {manifest.canvas_width}x{manifest.canvas_height}"
            ]
        )
    if not report.valid:
        _echo_report(report, "Layout check")
        if not force:
            raise _fail("layout no longer matches the manifest; rerun pack or pass --force")

    try:
        with Image.open(sheet) as image:
            edited = extract_sprites(image, manifest)
    except (FileNotFoundError, UnidentifiedImageError) as exc:
        raise _fail(f"cannot read sheet {sheet}: {exc}") from exc

    rebuilt = rebuild_wad(wad, edited, palette, sprites=collection.sprites, alpha_threshold=alpha_threshold)
    wad_mod.save(rebuilt.wad, out_wad)
    for name in rebuilt.replaced:
        typer.echo(f"replaced {name}")
    for failed in rebuilt.failed:
        typer.echo(f"not replaced {failed.name}: {failed.reason}", err=True)
    typer.echo(f"wrote {out_wad} ({len(rebuilt.replaced)} lumps replaced)")
    if rebuilt.failed:
        raise typer.Exit(code=1)


def main(argv: list[str] | None = None) -> None:
    app(prog_name="wadsheet", args=argv)


if __name__ == "__main__":
    main()
