"""FITS binary-table decoding for photometry light-curve products."""

from exoscope.fits.columns import ColumnDescriptor, ElementKind, field_width, resolve_columns
from exoscope.fits.decoder import FitsDocument, decode_fits, read_fits
from exoscope.fits.header import (
    END_CARD,
    BoolValue,
    EndCard,
    HeaderCard,
    HeaderUnit,
    HeaderValue,
    NullValue,
    NumberValue,
    StringValue,
    decode_card,
    parse_value_literal,
    read_header_unit,
)
from exoscope.fits.table import Cell, Table, read_binary_table

__all__ = [
    # header
    "HeaderValue",
    "StringValue",
    "NumberValue",
    "BoolValue",
    "NullValue",
    "HeaderCard",
    "EndCard",
    "END_CARD",
    "HeaderUnit",
    "decode_card",
    "parse_value_literal",
    "read_header_unit",
    # columns
    "ElementKind",
    "ColumnDescriptor",
    "field_width",
    "resolve_columns",
    # table
    "Cell",
    "Table",
    "read_binary_table",
    # decoder
    "FitsDocument",
    "decode_fits",
    "read_fits",
]
