"""FITS files on disk for CLI tests."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from tests.fits.fixtures.synthetic_fits import card, make_time_flux_fits, primary_header

N_CADENCES = 500


@pytest.fixture
def lc_fits_path(tmp_path: Path) -> Path:
    time = 1325.0 + np.arange(N_CADENCES) * (2.0 / 1440.0)
    flux = np.full(N_CADENCES, 1000.0)
    flux[100] = np.nan
    path = tmp_path / "tess2020_lc.fits"
    path.write_bytes(
        make_time_flux_fits(
            time.tolist(),
            flux.tolist(),
            primary_extra=[
                card("OBJECT", "TIC 307210830"),
                card("TELESCOP", "TESS"),
                card("INSTRUME", "TESS Photometer"),
            ],
            table_extra=[card("EXPOSURE", 0.9, "[d] time on source")],
        )
    )
    return path


@pytest.fixture
def small_fits_path(tmp_path: Path) -> Path:
    path = tmp_path / "small.fit"
    path.write_bytes(make_time_flux_fits([0.0, 1.0, 2.0, 3.0, 4.0], [10.0, 11.0, 12.0, 13.0, 14.0]))
    return path


@pytest.fixture
def image_only_path(tmp_path: Path) -> Path:
    path = tmp_path / "image_only.fits"
    path.write_bytes(primary_header())
    return path
