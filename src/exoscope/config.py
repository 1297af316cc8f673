"""Decoder configuration.

Defaults follow the FITS standard and the limits of the scan loop.  They can be
overridden per call or through the environment:

- ``EXOSCOPE_MAX_HDU_SCAN``: maximum number of extension HDUs inspected
  while looking for the binary table.
- ``EXOSCOPE_REQUIRE_END_CARD``: when truthy, a table header without an
  ``END`` card is a hard error instead of a logged warning.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

# FITS structural constants
CARD_SIZE = 80
BLOCK_SIZE = 2880
KEYWORD_WIDTH = 8
VALUE_INDICATOR_LIMIT = 10
MAX_NAXIS = 999
MAX_TFIELDS = 999

DEFAULT_MAX_HDU_SCAN = 10

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class DecoderConfig:
    """Options for `exoscope.fits.decode_fits`.

    Attributes:
        max_hdu_scan: Upper bound on extension HDUs inspected before giving up.
        require_end_card: Treat an unterminated table header as fatal.
    """

    max_hdu_scan: int = DEFAULT_MAX_HDU_SCAN
    require_end_card: bool = False

    def __post_init__(self) -> None:
        if self.max_hdu_scan < 1:
            raise ValueError(f"max_hdu_scan must be positive, got {self.max_hdu_scan}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DecoderConfig:
        """Build a config from ``EXOSCOPE_*`` environment variables."""
        env = os.environ if environ is None else environ
        max_scan_text = env.get("EXOSCOPE_MAX_HDU_SCAN", "").strip()
        try:
            max_hdu_scan = int(max_scan_text) if max_scan_text else DEFAULT_MAX_HDU_SCAN
        except ValueError as e:
            raise ValueError(f"Invalid EXOSCOPE_MAX_HDU_SCAN: {max_scan_text!r}") from e
        require_end = env.get("EXOSCOPE_REQUIRE_END_CARD", "").strip().lower() in _TRUTHY
        return cls(max_hdu_scan=max_hdu_scan, require_end_card=require_end)


def padded_length(n_bytes: int) -> int:
    """Round ``n_bytes`` up to the next multiple of the FITS block size."""
    return n_bytes + ((BLOCK_SIZE - n_bytes % BLOCK_SIZE) % BLOCK_SIZE)
