"""Light curve domain models.

This module provides:
- LightCurveData: time-series arrays pulled out of a decoded FITS table
- extract_lightcurve: column selection, masking and optional normalization
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from exoscope.domain.metadata import lookup
from exoscope.errors import LightCurveColumnError
from exoscope.fits.decoder import FitsDocument

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

TIME_COLUMN = "TIME"
QUALITY_COLUMN = "QUALITY"
# Preferred flux columns, Kepler/TESS SPOC naming first
FLUX_COLUMNS = ("PDCSAP_FLUX", "SAP_FLUX", "FLUX")


@dataclass
class LightCurveData:
    """Light curve arrays decoded from a FITS binary table.

    Attributes:
        time: Timestamps (float64), e.g. BJD - 2457000 for TESS
        flux: Flux values (float64), NaN where the cell was missing
        flux_err: Flux uncertainties (float64), NaN when no error column exists
        quality: Quality flags (int32), zeros when no QUALITY column exists
            and for missing QUALITY cells
        valid_mask: Finite time and flux with quality == 0 and a readable
            QUALITY cell
        object_name: OBJECT header value, if any
        flux_column: Name of the column used for flux
        time_unit: TUNIT of the time column
    """

    time: NDArray[np.float64]
    flux: NDArray[np.float64]
    flux_err: NDArray[np.float64]
    quality: NDArray[np.int32]
    valid_mask: NDArray[np.bool_]
    flux_column: str
    object_name: str | None = None
    time_unit: str = ""

    def __post_init__(self) -> None:
        """Validate shapes and make arrays read-only."""
        arrays: dict[str, np.ndarray[Any, Any]] = {
            "time": self.time,
            "flux": self.flux,
            "flux_err": self.flux_err,
            "quality": self.quality,
            "valid_mask": self.valid_mask,
        }
        n = len(self.time)
        for name, arr in arrays.items():
            if not isinstance(arr, np.ndarray):
                raise TypeError(f"{name} must be a numpy array, got {type(arr).__name__}")
            if len(arr) != n:
                raise ValueError(f"{name} length {len(arr)} != time length {n}")
        for arr in arrays.values():
            arr.flags.writeable = False

    @property
    def n_points(self) -> int:
        return len(self.time)

    @property
    def n_valid(self) -> int:
        return int(np.sum(self.valid_mask))

    @property
    def duration_days(self) -> float:
        """Span of valid timestamps."""
        if self.n_valid == 0:
            return 0.0
        t = self.time[self.valid_mask]
        return float(np.max(t) - np.min(t))

    @property
    def median_flux(self) -> float:
        if self.n_valid == 0:
            return float("nan")
        return float(np.median(self.flux[self.valid_mask]))

    @property
    def gap_fraction(self) -> float:
        """Fraction of points that are invalid."""
        if self.n_points == 0:
            return 0.0
        return 1.0 - (self.n_valid / self.n_points)

    def to_points(self, valid_only: bool = True) -> list[dict[str, float]]:
        """Records of ``time``, ``flux`` and (when finite) ``error``."""
        points: list[dict[str, float]] = []
        for i in range(self.n_points):
            if valid_only and not self.valid_mask[i]:
                continue
            point = {"time": float(self.time[i]), "flux": float(self.flux[i])}
            if np.isfinite(self.flux_err[i]):
                point["error"] = float(self.flux_err[i])
            points.append(point)
        return points


def _choose_flux_column(doc: FitsDocument, flux_column: str | None) -> str:
    if flux_column is not None:
        if flux_column not in doc.table:
            raise LightCurveColumnError(flux_column, doc.column_names)
        return flux_column
    for name in FLUX_COLUMNS:
        if name in doc.table:
            return name
    raise LightCurveColumnError(FLUX_COLUMNS[0], doc.column_names)


def extract_lightcurve(
    doc: FitsDocument,
    flux_column: str | None = None,
    normalize: bool = False,
) -> LightCurveData:
    """Build a light curve from a decoded FITS document.

    Args:
        doc: Decoded FITS document.
        flux_column: Flux column name; defaults to the first present of
            PDCSAP_FLUX, SAP_FLUX, FLUX.
        normalize: Divide flux and flux_err by the median valid flux.

    Returns:
        LightCurveData with read-only arrays.

    Raises:
        LightCurveColumnError: If the time or flux column is missing.
    """
    if TIME_COLUMN not in doc.table:
        raise LightCurveColumnError(TIME_COLUMN, doc.column_names)
    flux_name = _choose_flux_column(doc, flux_column)

    time = doc.as_array(TIME_COLUMN)
    flux = doc.as_array(flux_name)
    err_name = f"{flux_name}_ERR"
    flux_err = doc.as_array(err_name) if err_name in doc.table else np.full_like(flux, np.nan)
    if QUALITY_COLUMN in doc.table:
        quality_values = doc.as_array(QUALITY_COLUMN)
        quality_missing = np.isnan(quality_values)
        quality = np.nan_to_num(quality_values, nan=0.0).astype(np.int32)
    else:
        quality_missing = np.zeros(time.shape, dtype=bool)
        quality = np.zeros(time.shape, dtype=np.int32)

    # Rows with an unreadable QUALITY cell are never treated as good
    valid_mask = np.isfinite(time) & np.isfinite(flux) & (quality == 0) & ~quality_missing

    if normalize:
        median = float(np.median(flux[valid_mask])) if np.any(valid_mask) else float("nan")
        if np.isfinite(median) and median != 0.0:
            flux = flux / median
            flux_err = flux_err / median
        else:
            logger.warning("Cannot normalize %s: median valid flux is %s", flux_name, median)

    object_name = lookup(doc, "OBJECT")
    return LightCurveData(
        time=time,
        flux=flux,
        flux_err=flux_err,
        quality=quality,
        valid_mask=valid_mask,
        flux_column=flux_name,
        object_name=None if object_name is None else str(object_name),
        time_unit=doc.unit(TIME_COLUMN),
    )
