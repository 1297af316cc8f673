"""exoscope: decoder for Kepler/TESS FITS light-curve files."""

from __future__ import annotations

from exoscope.config import DecoderConfig
from exoscope.errors import FitsDecodeError, NoBinaryTableError
from exoscope.fits import FitsDocument, decode_fits, read_fits

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "DecoderConfig",
    "FitsDecodeError",
    "NoBinaryTableError",
    "FitsDocument",
    "decode_fits",
    "read_fits",
]
