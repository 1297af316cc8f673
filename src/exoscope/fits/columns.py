"""Binary-table column layout.

Resolves the ``TTYPEn``/``TFORMn``/``TUNITn`` cards of a BINTABLE header into
ordered column descriptors with byte offsets inside one row.

Only scalar columns of five numeric types are decoded.  Every other field
(strings, logicals, bit arrays, 64-bit ints, complex, array-descriptor and
repeat > 1 columns) is skipped but still consumes its on-disk width, so the
offsets of the columns after it stay correct.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

import numpy as np

from exoscope.config import MAX_TFIELDS
from exoscope.fits.header import HeaderUnit

logger = logging.getLogger(__name__)

_TFORM_RE = re.compile(r"^\s*(\d*)\s*([A-Za-z])(.*)$")

# On-disk bytes per element for every standard BINTABLE type code
_FITS_ELEMENT_BYTES: dict[str, int] = {
    "L": 1,
    "A": 1,
    "B": 1,
    "I": 2,
    "J": 4,
    "K": 8,
    "E": 4,
    "D": 8,
    "C": 8,
    "M": 16,
}
# Variable-length array descriptors take a fixed width in the row
_DESCRIPTOR_BYTES: dict[str, int] = {"P": 8, "Q": 16}


class ElementKind(str, Enum):
    """Decodable scalar cell types."""

    FLOAT32 = "FLOAT32"
    FLOAT64 = "FLOAT64"
    INT32 = "INT32"
    INT16 = "INT16"
    UINT8 = "UINT8"
    UNSUPPORTED = "UNSUPPORTED"

    @property
    def width(self) -> int:
        """Bytes per cell; 0 for UNSUPPORTED."""
        return _KIND_WIDTH[self]

    @property
    def dtype(self) -> np.dtype:
        """Big-endian numpy dtype of one cell."""
        if self is ElementKind.UNSUPPORTED:
            raise ValueError("UNSUPPORTED columns have no dtype")
        return np.dtype(_KIND_DTYPE[self])

    @property
    def is_float(self) -> bool:
        return self in (ElementKind.FLOAT32, ElementKind.FLOAT64)

    @classmethod
    def from_type_char(cls, type_char: str) -> ElementKind:
        return _TYPE_CHAR_KIND.get(type_char, cls.UNSUPPORTED)


_KIND_WIDTH = {
    ElementKind.FLOAT64: 8,
    ElementKind.FLOAT32: 4,
    ElementKind.INT32: 4,
    ElementKind.INT16: 2,
    ElementKind.UINT8: 1,
    ElementKind.UNSUPPORTED: 0,
}
_KIND_DTYPE = {
    ElementKind.FLOAT64: ">f8",
    ElementKind.FLOAT32: ">f4",
    ElementKind.INT32: ">i4",
    ElementKind.INT16: ">i2",
    ElementKind.UINT8: "u1",
}
_TYPE_CHAR_KIND = {
    "D": ElementKind.FLOAT64,
    "E": ElementKind.FLOAT32,
    "J": ElementKind.INT32,
    "I": ElementKind.INT16,
    "B": ElementKind.UINT8,
}


@dataclass(frozen=True)
class ColumnDescriptor:
    """One decodable column of a binary table.

    Attributes:
        name: Column name from ``TTYPEn``.
        format_code: Raw ``TFORMn`` text.
        unit: ``TUNITn`` text, empty when absent.
        byte_offset: Offset of the cell from the start of a row.
        element_kind: Scalar type of the cell.
    """

    name: str
    format_code: str
    unit: str
    byte_offset: int
    element_kind: ElementKind

    @property
    def width(self) -> int:
        return self.element_kind.width


def type_char(format_code: str) -> str:
    """Strip decimal digits (and blanks) from a TFORM to get its type character."""
    return re.sub(r"[0-9]", "", format_code).strip()


def field_width(format_code: str) -> int | None:
    """On-disk width in bytes of a field with the given TFORM.

    Returns:
        The width, 0 for an empty or zero-repeat field, or None when the type
        code is not a standard BINTABLE code.
    """
    if not format_code.strip():
        return 0
    match = _TFORM_RE.match(format_code)
    if match is None:
        return None
    repeat_text, code, _ = match.groups()
    code = code.upper()
    repeat = int(repeat_text) if repeat_text else 1
    if code == "X":
        return (repeat + 7) // 8
    if code in _DESCRIPTOR_BYTES:
        return _DESCRIPTOR_BYTES[code] if repeat > 0 else 0
    element_bytes = _FITS_ELEMENT_BYTES.get(code)
    if element_bytes is None:
        return None
    return repeat * element_bytes


def _element_kind(format_code: str) -> ElementKind:
    kind = ElementKind.from_type_char(type_char(format_code))
    if kind is ElementKind.UNSUPPORTED:
        return kind
    match = _TFORM_RE.match(format_code)
    repeat = int(match.group(1)) if match is not None and match.group(1) else 1
    # Array cells are not decoded; zero-repeat cells hold nothing
    if repeat != 1:
        return ElementKind.UNSUPPORTED
    return kind


def _column_text(header: HeaderUnit, key: str, default: str) -> str:
    value = header.get_value(key)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def resolve_columns(
    header: HeaderUnit,
    field_count: int,
    row_stride: int | None = None,
) -> tuple[ColumnDescriptor, ...]:
    """Build descriptors for the decodable columns of a BINTABLE header.

    Args:
        header: The BINTABLE extension header.
        field_count: Value of ``TFIELDS``; at most 999 fields are read.
        row_stride: Row width in bytes (``NAXIS1``).  When positive, columns
            that would extend past the end of a row are dropped.

    Returns:
        Descriptors in field order with strictly increasing offsets.
    """
    columns: list[ColumnDescriptor] = []
    seen: set[str] = set()
    offset = 0
    complete = True
    if field_count > MAX_TFIELDS:
        logger.warning(
            "TFIELDS=%d exceeds %d; reading the first %d", field_count, MAX_TFIELDS, MAX_TFIELDS
        )
        field_count = MAX_TFIELDS
    for i in range(1, max(field_count, 0) + 1):
        name = _column_text(header, f"TTYPE{i}", f"COL{i}")
        form = _column_text(header, f"TFORM{i}", "")
        unit = _column_text(header, f"TUNIT{i}", "")

        width = field_width(form)
        if width is None:
            logger.warning(
                "Unrecognized TFORM%d=%r for column %s; cannot place fields %d..%d",
                i,
                form,
                name,
                i,
                field_count,
            )
            complete = False
            break

        kind = _element_kind(form)
        if kind is ElementKind.UNSUPPORTED or width == 0:
            logger.debug("Skipping column %s (TFORM%d=%r, %d bytes)", name, i, form, width)
        elif row_stride is not None and row_stride > 0 and offset + width > row_stride:
            logger.warning(
                "Column %s at offset %d (%d bytes) overflows row width %d; dropped",
                name,
                offset,
                width,
                row_stride,
            )
        elif name in seen:
            logger.warning("Duplicate column name %s (field %d); keeping the first", name, i)
        else:
            seen.add(name)
            columns.append(
                ColumnDescriptor(
                    name=name,
                    format_code=form,
                    unit=unit,
                    byte_offset=offset,
                    element_kind=kind,
                )
            )
        offset += width

    if complete and row_stride is not None and row_stride > 0 and offset != row_stride:
        logger.warning("Column layout covers %d bytes but NAXIS1=%d", offset, row_stride)
    return tuple(columns)
