"""Binary-table cell decoding.

Every cell is a big-endian scalar at ``data_offset + row_stride * r +
byte_offset``.  Cells that fall outside the buffer and non-finite floats are
returned as None; a bad cell never aborts the read.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TypeAlias

import numpy as np

from exoscope.fits.columns import ColumnDescriptor, ElementKind

logger = logging.getLogger(__name__)

Cell: TypeAlias = int | float | None
Table: TypeAlias = dict[str, tuple[Cell, ...]]


def _decode_column(
    raw: np.ndarray,
    first: int,
    row_count: int,
    row_stride: int,
    kind: ElementKind,
) -> tuple[Cell, ...]:
    """Decode one column of ``row_count`` cells starting at byte ``first``."""
    size = raw.shape[0]
    width = kind.width
    if row_count == 0:
        return ()
    if first < 0 or first + width > size:
        return (None,) * row_count

    # Only rows that can start inside the buffer need positions
    if row_stride > 0:
        n_candidates = min(row_count, (size - first) // row_stride + 1)
    else:
        n_candidates = row_count
    positions = first + row_stride * np.arange(n_candidates, dtype=np.int64)
    in_range = (positions >= 0) & (positions + width <= size)

    cells = np.zeros((n_candidates, width), dtype=np.uint8)
    index = positions[in_range, None] + np.arange(width, dtype=np.int64)
    cells[in_range] = raw[index]
    values = cells.view(kind.dtype).reshape(n_candidates)

    valid = in_range
    if kind.is_float:
        valid = valid & np.isfinite(values)

    decoded = values.tolist()
    out: list[Cell] = [v if ok else None for v, ok in zip(decoded, valid.tolist(), strict=True)]
    if n_candidates < row_count:
        out.extend([None] * (row_count - n_candidates))
    return tuple(out)


def read_binary_table(
    buffer: bytes | bytearray | memoryview,
    data_offset: int,
    row_count: int,
    row_stride: int,
    columns: Sequence[ColumnDescriptor],
) -> Table:
    """Decode every cell of every column.

    Args:
        buffer: Complete FITS byte buffer; never modified.
        data_offset: Byte offset of the first row.
        row_count: Number of rows (``NAXIS2``).
        row_stride: Bytes per row (``NAXIS1``).
        columns: Descriptors from `resolve_columns`.

    Returns:
        Mapping from column name to a tuple of exactly ``row_count`` cells,
        index-aligned across columns.
    """
    raw = np.frombuffer(buffer, dtype=np.uint8) if len(buffer) else np.zeros(0, dtype=np.uint8)
    row_count = max(row_count, 0)
    table: Table = {}
    for col in columns:
        values = _decode_column(
            raw,
            data_offset + col.byte_offset,
            row_count,
            row_stride,
            col.element_kind,
        )
        n_missing = sum(1 for v in values if v is None)
        if n_missing:
            logger.debug("Column %s: %d of %d cells missing", col.name, n_missing, row_count)
        table[col.name] = values
    return table
