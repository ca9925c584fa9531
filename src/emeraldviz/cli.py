"""Click CLI for emeraldviz."""

from __future__ import annotations

import logging

import click

from emeraldviz.alignment_io import load_alignment_result
from emeraldviz.config import DEFAULT_JPEG_QUALITY, MAX_RESOLUTION_SCALE
from emeraldviz.export import DownloadSink, ExportFormat, ExportOrchestrator
from emeraldviz.geometry import ZoomTransform
from emeraldviz.models import LAYER_NAMES, VisualizationSettings
from emeraldviz.share import generate_shareable_url, is_alignment_shareable
from emeraldviz.view import DotMatrixView


def parse_layers(layers: str) -> list[str]:
    """Parse a comma-separated layer list.

    Dashes and underscores are interchangeable.

    Args:
        layers: Layer names, e.g. ``'grid,axis-labels'``.

    Returns:
        Deduplicated layer names in input order.

    Examples:
        >>> parse_layers('grid,axis-labels')
        ['grid', 'axis_labels']
        >>> parse_layers('minimap, minimap,')
        ['minimap']
        >>> parse_layers('legend')
        Traceback (most recent call last):
            ...
        ValueError: Unknown layer 'legend'
    """
    names: list[str] = []
    for part in layers.split(","):
        name = part.strip().replace("-", "_")
        if not name:
            continue
        if name not in LAYER_NAMES:
            raise ValueError(f"Unknown layer '{part.strip()}'")
        if name not in names:
            names.append(name)
    return names


def _format_window(window) -> str:
    return f"{window.start_position}-{window.end_position}"


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log debug output.")
def main(verbose):
    """Dot matrix alignment viewer with safety-window highlighting."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command("export")
@click.argument("alignment", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-f",
    "--format",
    "formats",
    multiple=True,
    type=click.Choice(["png", "jpeg", "jpg", "svg"], case_sensitive=False),
    default=("png",),
    show_default=True,
    help="Output format; repeat for several.",
)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Directory receiving the exported files.",
)
@click.option(
    "--scale",
    type=click.FloatRange(1, MAX_RESOLUTION_SCALE),
    default=1.0,
    show_default=True,
    help="Raster resolution multiplier.",
)
@click.option(
    "--quality",
    type=click.FloatRange(0, 1),
    default=DEFAULT_JPEG_QUALITY,
    show_default=True,
    help="JPEG quality.",
)
@click.option("--zoom", type=float, default=1.0, show_default=True, help="Zoom factor k.")
@click.option(
    "--pan",
    type=(float, float),
    default=(0.0, 0.0),
    show_default=True,
    help="Translation x y in pixels.",
)
@click.option("--hide", default="", help=f"Comma-separated layers to hide ({', '.join(LAYER_NAMES)}).")
def export_cmd(alignment, formats, output_dir, scale, quality, zoom, pan, hide):
    """Export ALIGNMENT (JSON or YAML) as PNG, JPEG and/or SVG."""
    try:
        settings = VisualizationSettings.with_hidden(parse_layers(hide))
        transform = ZoomTransform(k=zoom, x=pan[0], y=pan[1])
        result = load_alignment_result(alignment)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    view = DotMatrixView.from_result(result, transform=transform, settings=settings)
    orchestrator = ExportOrchestrator(view, DownloadSink(output_dir))

    failed = False
    for fmt in dict.fromkeys(ExportFormat.parse(f) for f in formats):
        outcome = orchestrator.export(fmt, quality=quality, resolution_scale=scale)
        if outcome.ok:
            click.echo(f"Saved: {outcome.path}")
        else:
            failed = True
            click.echo(f"Error exporting {fmt.value}: {outcome.message}", err=True)
    if failed:
        raise SystemExit(1)


@main.command("windows")
@click.argument("alignment", type=click.Path(exists=True, dir_okay=False))
@click.option("--raw", is_flag=True, default=False, help="Show windows before merging.")
def windows_cmd(alignment, raw):
    """List the safety windows of ALIGNMENT per sequence."""
    try:
        result = load_alignment_result(alignment)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    view = DotMatrixView.from_result(result)
    mapping = view.safety_windows if raw else view.merged_safety_windows
    for label, descriptor, windows in (
        ("A", result.descriptor_a, mapping.sequence_a),
        ("B", result.descriptor_b, mapping.sequence_b),
    ):
        name = f"{label} ({descriptor})" if descriptor else label
        spans = ", ".join(_format_window(w) for w in windows) or "none"
        click.echo(f"{name}: {spans}")


@main.command("share-url")
@click.argument("alignment", type=click.Path(exists=True, dir_okay=False))
@click.option("--base-url", required=True, help="Application URL to attach the query to.")
@click.option("--alpha", type=click.FloatRange(0, 1), required=True, help="Alignment alpha.")
@click.option("--delta", type=click.IntRange(0, 100), required=True, help="Alignment delta.")
@click.option("--accession-a", help="UniProt accession of sequence A.")
@click.option("--accession-b", help="UniProt accession of sequence B.")
@click.option("--gap-cost", type=float, help="Gap extension cost.")
@click.option("--start-gap", type=float, help="Gap opening cost.")
@click.option("--cost-matrix-type", type=click.IntRange(0, 8), help="Substitution matrix index.")
def share_url_cmd(
    alignment, base_url, alpha, delta, accession_a, accession_b, gap_cost, start_gap, cost_matrix_type
):
    """Print a shareable URL for ALIGNMENT."""
    try:
        result = load_alignment_result(alignment)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    if not is_alignment_shareable(result.descriptor_a, result.descriptor_b, accession_a, accession_b):
        raise click.ClickException("Both sequences need UniProt accessions to be shareable")
    url = generate_shareable_url(
        base_url,
        result.descriptor_a,
        result.descriptor_b,
        alpha,
        delta,
        accession_a=accession_a,
        accession_b=accession_b,
        gap_cost=gap_cost,
        start_gap=start_gap,
        cost_matrix_type=cost_matrix_type,
    )
    if url is None:
        raise click.ClickException("Could not build a share URL")
    click.echo(url)
