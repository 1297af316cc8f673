"""FITS document decoding.

Scans the HDUs of a FITS buffer in order, skipping non-table extensions,
until it finds the first BINTABLE extension; then resolves its columns and
decodes every row.

Key Types:
- FitsDocument: immutable decode result (headers, table, column names)

Usage:
    from exoscope.fits import decode_fits, read_fits

    doc = read_fits("tess2019_lc.fits")
    doc.column_names      # ('TIME', 'SAP_FLUX', ...)
    doc.table["TIME"][0]  # 1325.29...
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import numpy as np

from exoscope.config import MAX_NAXIS, DecoderConfig, padded_length
from exoscope.errors import ErrorType, FitsDecodeError, NoBinaryTableError
from exoscope.fits.columns import ColumnDescriptor, resolve_columns
from exoscope.fits.header import HeaderUnit, read_header_unit
from exoscope.fits.table import Cell, read_binary_table

logger = logging.getLogger(__name__)

FITS_SUFFIXES = frozenset({".fits", ".fit", ".fts"})


@dataclass(frozen=True)
class FitsDocument:
    """Decoded FITS light-curve product.

    Attributes:
        primary_header: Cards of the primary HDU.
        extension_header: Cards of the first BINTABLE extension.
        table: Column name -> row-aligned cells; None marks a missing value.
        column_names: Decoded columns in field order.
        row_count: Number of rows (``NAXIS2``, capped at the rows that start
            inside the buffer); every column has this length.
        columns: Resolved column descriptors (units, formats, offsets).
        warnings: Soft problems met while decoding (e.g. a missing END card).
    """

    primary_header: HeaderUnit
    extension_header: HeaderUnit
    table: Mapping[str, tuple[Cell, ...]]
    column_names: tuple[str, ...]
    row_count: int
    columns: tuple[ColumnDescriptor, ...] = ()
    warnings: tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.table, MappingProxyType):
            object.__setattr__(self, "table", MappingProxyType(dict(self.table)))

    def column(self, name: str) -> ColumnDescriptor:
        """Return the descriptor of column ``name``."""
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(name)

    def unit(self, name: str) -> str:
        return self.column(name).unit

    def as_array(self, name: str) -> np.ndarray:
        """Column ``name`` as float64 with NaN for missing cells."""
        return np.array(
            [np.nan if v is None else v for v in self.table[name]],
            dtype=np.float64,
        )

    def as_masked(self, name: str) -> np.ma.MaskedArray:
        """Column ``name`` as a masked array; missing cells are masked."""
        values = self.table[name]
        mask = np.array([v is None for v in values], dtype=np.bool_)
        data = np.array([0 if v is None else v for v in values])
        return np.ma.MaskedArray(data, mask=mask)


def _hdu_data_bytes(header: HeaderUnit) -> int:
    """Padded size of the data section following ``header``.

    ``prod(NAXISn) * |BITPIX| / 8`` plus ``PCOUNT * GCOUNT`` for heap and
    group-parameter bytes.  A missing or non-positive axis makes the array
    empty; ``NAXIS`` above the FITS limit of 999 is treated as 0.
    """
    naxis = header.get_int("NAXIS", 0)
    if naxis > MAX_NAXIS:
        logger.warning(
            "NAXIS=%d exceeds %d; treating the HDU as having no array data", naxis, MAX_NAXIS
        )
        naxis = 0
    size = 0
    if naxis > 0:
        n_pixels = 1
        for i in range(1, naxis + 1):
            n = header.get_int(f"NAXIS{i}", 0)
            if n <= 0:
                n_pixels = 0
                break
            n_pixels *= n
        size = abs(header.get_int("BITPIX", 0)) * n_pixels // 8
    size += header.get_int("PCOUNT", 0) * header.get_int("GCOUNT", 1)
    return padded_length(max(size, 0))


def _non_negative(header: HeaderUnit, key: str, default: int) -> int:
    value = header.get_int(key, default)
    if value < 0:
        logger.warning("Negative %s=%d in table header; using 0", key, value)
        return 0
    return value


def _is_bintable(header: HeaderUnit) -> bool:
    return header.get_str("XTENSION").strip() == "BINTABLE"


def decode_fits(
    buffer: bytes | bytearray | memoryview,
    *,
    config: DecoderConfig | None = None,
) -> FitsDocument:
    """Decode the primary header and first binary table of a FITS buffer.

    Args:
        buffer: Complete FITS file contents.  Only read, never modified.
        config: Scan limits; defaults to `DecoderConfig()`.

    Returns:
        FitsDocument with both headers and every decodable column.
        A table header that declares more rows than the buffer can hold
        yields the rows present, with a warning in ``warnings``.

    Raises:
        NoBinaryTableError: If no BINTABLE extension is found within the
            buffer and the HDU scan budget.
        FitsDecodeError: If ``config.require_end_card`` is set and the table
            header has no END card.
    """
    cfg = config or DecoderConfig()
    size = len(buffer)
    warnings: list[str] = []

    primary = read_header_unit(buffer, 0)
    if not primary.terminated:
        warnings.append("primary header has no END card")
    offset = primary.padded_bytes + _hdu_data_bytes(primary)

    extension: HeaderUnit | None = None
    hdus_scanned = 0
    for _ in range(cfg.max_hdu_scan):
        if offset >= size:
            break
        header = read_header_unit(buffer, offset)
        if header.consumed_bytes == 0:
            break
        hdus_scanned += 1
        if _is_bintable(header):
            extension = header
            offset += header.padded_bytes
            break
        data_bytes = _hdu_data_bytes(header)
        logger.debug(
            "Skipping %s HDU at offset %d (%d header + %d data bytes)",
            header.get_str("XTENSION", "unnamed") or "unnamed",
            offset,
            header.padded_bytes,
            data_bytes,
        )
        offset += header.padded_bytes + data_bytes

    if extension is None:
        logger.warning(
            "No BINTABLE extension after %d HDU(s) (offset %d of %d bytes)",
            hdus_scanned,
            offset,
            size,
        )
        raise NoBinaryTableError(hdus_scanned=hdus_scanned, offset=offset)

    if not extension.terminated:
        if cfg.require_end_card:
            raise FitsDecodeError(
                "BINTABLE header has no END card",
                ErrorType.TRUNCATED_HEADER,
                offset=offset,
            )
        warnings.append("BINTABLE header has no END card; column data may be unreliable")

    row_stride = _non_negative(extension, "NAXIS1", 0)
    row_count = _non_negative(extension, "NAXIS2", 0)
    field_count = _non_negative(extension, "TFIELDS", 0)
    heap_bytes = extension.get_int("PCOUNT", 0) * extension.get_int("GCOUNT", 1)

    columns = resolve_columns(extension, field_count, row_stride)
    if not columns:
        logger.warning("BINTABLE has %d field(s) but none are decodable", field_count)

    expected_end = offset + row_stride * row_count + max(heap_bytes, 0)
    if expected_end > size:
        warnings.append(f"table data truncated: needs {expected_end} bytes, buffer has {size}")
        logger.warning("Table data extends to byte %d but buffer has %d bytes", expected_end, size)

    if columns:
        # Rows that start past the end of the buffer carry no cells
        available = max(size - offset, 0)
        max_rows = -(-available // row_stride) if row_stride > 0 else 0
        if row_count > max_rows:
            warnings.append(
                f"NAXIS2={row_count} but the buffer holds at most {max_rows} row(s); "
                "row count capped"
            )
            logger.warning("Capping row count from %d to %d", row_count, max_rows)
            row_count = max_rows

    table = read_binary_table(buffer, offset, row_count, row_stride, columns)

    return FitsDocument(
        primary_header=primary,
        extension_header=extension,
        table=table,
        column_names=tuple(col.name for col in columns),
        row_count=row_count,
        columns=columns,
        warnings=tuple(warnings),
    )


def read_fits(
    path: str | Path,
    *,
    config: DecoderConfig | None = None,
    require_extension: bool = True,
) -> FitsDocument:
    """Read a FITS file from disk and decode it.

    Args:
        path: File path.
        config: Decoder options.
        require_extension: Reject files without a FITS suffix
            (``.fits``, ``.fit``, ``.fts``; case-insensitive).

    Raises:
        FitsDecodeError: If the suffix is rejected.
        NoBinaryTableError: If the file holds no binary table.
        OSError: If the file cannot be read.
    """
    p = Path(path)
    if require_extension and p.suffix.lower() not in FITS_SUFFIXES:
        raise FitsDecodeError(
            f"Not a FITS file name: {p.name} (expected one of {', '.join(sorted(FITS_SUFFIXES))})",
            path=str(p),
        )
    data = p.read_bytes()
    logger.debug("Read %d bytes from %s", len(data), p)
    return decode_fits(data, config=config)
