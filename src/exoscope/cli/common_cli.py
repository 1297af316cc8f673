"""Shared helpers for click-based `exoscope` commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click

from exoscope.config import DecoderConfig
from exoscope.errors import ErrorType, FitsDecodeError
from exoscope.fits import FitsDocument, read_fits

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_DECODE_ERROR = 2


class ExoscopeCliError(click.ClickException):
    """Click exception with explicit exit-code control."""

    def __init__(self, message: str, *, exit_code: int = EXIT_INPUT_ERROR) -> None:
        super().__init__(message)
        self.exit_code = int(exit_code)


def configure_logging(verbose: bool) -> None:
    """Send debug logs to stderr when ``--verbose`` is given."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


def load_document(path: Path) -> FitsDocument:
    """Decode a FITS file with user-facing errors."""
    try:
        config = DecoderConfig.from_env()
    except ValueError as exc:
        raise ExoscopeCliError(f"Invalid configuration: {exc}") from exc
    try:
        return read_fits(path, config=config)
    except FitsDecodeError as exc:
        if exc.error_type is ErrorType.INVALID_INPUT:
            raise ExoscopeCliError(str(exc), exit_code=EXIT_INPUT_ERROR) from exc
        raise ExoscopeCliError(f"Failed to parse FITS file: {exc}", exit_code=EXIT_DECODE_ERROR) from exc
    except OSError as exc:
        raise ExoscopeCliError(f"Cannot read {path}: {exc}") from exc


def dump_json_output(payload: dict[str, Any], out_path: Path | None) -> None:
    """Write JSON payload to file or stdout."""
    text = json.dumps(payload, sort_keys=True, indent=2)
    if out_path is None:
        click.echo(text)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text + "\n", encoding="utf-8")


def resolve_optional_output_path(output_arg: str | None) -> Path | None:
    """Map '-', empty, or None to stdout; otherwise return filesystem path."""
    if output_arg is None:
        return None
    value = str(output_arg).strip()
    if value in {"", "-"}:
        return None
    return Path(value)
