"""`exoscope` command line interface."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import click

from exoscope.cli.common_cli import (
    EXIT_INPUT_ERROR,
    ExoscopeCliError,
    configure_logging,
    dump_json_output,
    load_document,
    resolve_optional_output_path,
)
from exoscope.domain import card_to_dict, extract_lightcurve, summarize_observation
from exoscope.errors import LightCurveColumnError
from exoscope.utils.caps import DEFAULT_MAX_POINTS, DEFAULT_MAX_ROWS, downsample_points, downsample_rows

_FITS_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)
_OUT_OPTION = click.option(
    "--out",
    "-o",
    "output_path",
    default=None,
    help="Output JSON path ('-' or omitted for stdout).",
)


@click.group()
@click.version_option(package_name="exoscope-fits")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """exoscope CLI for Kepler/TESS FITS light-curve files."""
    configure_logging(verbose)


@cli.command("header")
@click.argument("fits_file", type=_FITS_PATH)
@_OUT_OPTION
def header_command(fits_file: Path, output_path: str | None) -> None:
    """Dump primary and BINTABLE header cards as JSON."""
    doc = load_document(fits_file)
    payload = {
        "file": fits_file.name,
        "primary_header": [card_to_dict(c) for c in doc.primary_header],
        "extension_header": [card_to_dict(c) for c in doc.extension_header],
        "warnings": list(doc.warnings),
    }
    dump_json_output(payload, resolve_optional_output_path(output_path))


@cli.command("summary")
@click.argument("fits_file", type=_FITS_PATH)
@_OUT_OPTION
def summary_command(fits_file: Path, output_path: str | None) -> None:
    """Print observation details (object, telescope, instrument, ...)."""
    doc = load_document(fits_file)
    summary = summarize_observation(doc)
    payload = {"file": fits_file.name, **summary.model_dump(mode="json")}
    dump_json_output(payload, resolve_optional_output_path(output_path))


@cli.command("table")
@click.argument("fits_file", type=_FITS_PATH)
@click.option(
    "--columns",
    "-c",
    "column_names",
    multiple=True,
    help="Column to include (repeatable). Defaults to all decoded columns.",
)
@click.option(
    "--max-rows",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_ROWS,
    show_default=True,
    help="Downsample rows to at most this many.",
)
@_OUT_OPTION
def table_command(
    fits_file: Path,
    column_names: tuple[str, ...],
    max_rows: int,
    output_path: str | None,
) -> None:
    """Dump binary-table columns as JSON."""
    doc = load_document(fits_file)
    selected = column_names or doc.column_names
    unknown = [name for name in selected if name not in doc.table]
    if unknown:
        raise ExoscopeCliError(
            f"Unknown column(s): {', '.join(unknown)}. Available: {', '.join(doc.column_names)}",
            exit_code=EXIT_INPUT_ERROR,
        )
    columns: dict[str, Any] = {}
    for name in selected:
        columns[name] = {
            "unit": doc.unit(name),
            "format": doc.column(name).format_code,
            "values": downsample_rows(doc.table[name], max_rows, context=name),
        }
    payload = {
        "file": fits_file.name,
        "row_count": doc.row_count,
        "column_names": list(selected),
        "columns": columns,
    }
    dump_json_output(payload, resolve_optional_output_path(output_path))


@cli.command("lightcurve")
@click.argument("fits_file", type=_FITS_PATH)
@click.option("--flux-column", default=None, help="Flux column (default: PDCSAP_FLUX, SAP_FLUX, FLUX).")
@click.option("--normalize", is_flag=True, default=False, help="Divide flux by its median.")
@click.option(
    "--max-points",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_POINTS,
    show_default=True,
    help="Downsample valid points to at most this many.",
)
@_OUT_OPTION
def lightcurve_command(
    fits_file: Path,
    flux_column: str | None,
    normalize: bool,
    max_points: int,
    output_path: str | None,
) -> None:
    """Extract valid time/flux points as JSON."""
    doc = load_document(fits_file)
    try:
        lc = extract_lightcurve(doc, flux_column=flux_column, normalize=normalize)
    except LightCurveColumnError as exc:
        raise ExoscopeCliError(str(exc), exit_code=EXIT_INPUT_ERROR) from exc
    points = downsample_points(lc.to_points(), max_points, context=lc.object_name or "")
    payload = {
        "file": fits_file.name,
        "object": lc.object_name,
        "flux_column": lc.flux_column,
        "time_unit": lc.time_unit,
        "normalized": normalize,
        "n_points": lc.n_points,
        "n_valid": lc.n_valid,
        "points": points,
    }
    dump_json_output(payload, resolve_optional_output_path(output_path))


def main() -> int:
    """Main entry point for the CLI."""
    try:
        cli(standalone_mode=False)
        return 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
