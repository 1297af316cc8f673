"""Tests for exoscope.fits.decoder: HDU scanning and document assembly."""

from __future__ import annotations

import io
import logging
import time
from pathlib import Path

import numpy as np
import pytest

from exoscope.config import DecoderConfig
from exoscope.errors import ErrorType, FitsDecodeError, NoBinaryTableError
from exoscope.fits import FitsDocument, decode_fits, read_fits
from tests.fits.fixtures.synthetic_fits import (
    BLOCK,
    ColumnSpec,
    bintable_header,
    card,
    header_block,
    image_extension,
    make_time_flux_fits,
    pad_block,
    primary_header,
    rows_bytes,
)

TIME = [1325.29, 1325.31, 1325.33, 1325.35]
FLUX = [1.0, 0.998, 0.9975, 1.001]


@pytest.fixture
def time_flux_buffer() -> bytes:
    return make_time_flux_fits(
        TIME,
        FLUX,
        primary_extra=[card("OBJECT", "TIC 261136679"), card("TELESCOP", "TESS")],
    )


class TestDecodeFits:
    """Tests for decode_fits on synthetic buffers."""

    def test_time_flux_round_trip(self, time_flux_buffer: bytes) -> None:
        doc = decode_fits(time_flux_buffer)
        assert isinstance(doc, FitsDocument)
        assert doc.row_count == 4
        assert doc.column_names == ("TIME", "FLUX")
        assert len(doc.table["TIME"]) == 4
        assert len(doc.table["FLUX"]) == 4
        np.testing.assert_allclose(doc.table["TIME"], TIME)
        np.testing.assert_allclose(doc.table["FLUX"], np.asarray(FLUX, dtype=np.float32), rtol=1e-7)
        assert doc.warnings == ()

    def test_headers_are_kept(self, time_flux_buffer: bytes) -> None:
        doc = decode_fits(time_flux_buffer)
        assert doc.primary_header.get_value("SIMPLE") is True
        assert doc.primary_header.get_value("OBJECT") == "TIC 261136679"
        assert doc.extension_header.get_value("XTENSION") == "BINTABLE"
        assert doc.extension_header.get_value("TFIELDS") == 2
        assert doc.unit("TIME") == "BJD - 2457000, days"
        assert doc.unit("FLUX") == "e-/s"

    def test_nan_cell_is_missing(self) -> None:
        doc = decode_fits(make_time_flux_fits([1.0, 2.0, 3.0], [1.0, float("nan"), 1.0]))
        assert doc.table["FLUX"] == (1.0, None, 1.0)
        assert doc.as_array("FLUX")[1] != doc.as_array("FLUX")[1]
        masked = doc.as_masked("FLUX")
        assert masked.mask.tolist() == [False, True, False]

    def test_primary_only_raises(self) -> None:
        with pytest.raises(NoBinaryTableError) as exc_info:
            decode_fits(primary_header())
        assert exc_info.value.error_type is ErrorType.NO_TABLE
        assert exc_info.value.context["hdus_scanned"] == 0
        assert isinstance(exc_info.value, FitsDecodeError)
        assert isinstance(exc_info.value, ValueError)

    def test_empty_buffer_raises(self) -> None:
        with pytest.raises(NoBinaryTableError):
            decode_fits(b"")

    def test_garbage_buffer_raises(self) -> None:
        with pytest.raises(NoBinaryTableError):
            decode_fits(bytes(range(256)) * 50)

    def test_unsupported_column_dropped(self) -> None:
        body = rows_bytes([("TIME", ">f8", [1.0, 2.0]), ("LABEL", "S1", [b"a", b"b"])])
        buffer = (
            primary_header()
            + bintable_header(
                [ColumnSpec("TIME", "1D"), ColumnSpec("LABEL", "1A")], row_stride=9, row_count=2
            )
            + pad_block(body)
        )
        doc = decode_fits(buffer)
        assert doc.column_names == ("TIME",)
        assert "LABEL" not in doc.table
        assert doc.table["TIME"] == (1.0, 2.0)

    def test_unsupported_column_before_supported_keeps_offsets(self) -> None:
        body = rows_bytes(
            [("LABEL", "S3", [b"abc", b"def"]), ("FLUX", ">f4", [0.5, 0.25]), ("Q", ">i4", [0, 8])]
        )
        buffer = (
            primary_header()
            + bintable_header(
                [ColumnSpec("LABEL", "3A"), ColumnSpec("FLUX", "1E"), ColumnSpec("Q", "1J")],
                row_stride=11,
                row_count=2,
            )
            + pad_block(body)
        )
        doc = decode_fits(buffer)
        assert doc.column_names == ("FLUX", "Q")
        assert doc.table["FLUX"] == (0.5, 0.25)
        assert doc.table["Q"] == (0, 8)

    def test_idempotent(self, time_flux_buffer: bytes) -> None:
        assert decode_fits(time_flux_buffer) == decode_fits(time_flux_buffer)

    def test_buffer_is_not_modified(self, time_flux_buffer: bytes) -> None:
        buf = bytearray(time_flux_buffer)
        decode_fits(buf)
        assert bytes(buf) == time_flux_buffer

    def test_table_is_read_only(self, time_flux_buffer: bytes) -> None:
        doc = decode_fits(time_flux_buffer)
        with pytest.raises(TypeError):
            doc.table["TIME"] = ()  # type: ignore[index]

    def test_image_extensions_are_skipped(self) -> None:
        buffer = make_time_flux_fits(
            TIME,
            FLUX,
            before_table=image_extension((11, 11), bitpix=-32) + image_extension((3,), bitpix=16),
        )
        doc = decode_fits(buffer)
        assert doc.row_count == 4
        np.testing.assert_allclose(doc.table["TIME"], TIME)

    def test_multi_block_image_extension(self) -> None:
        # 100 x 100 float64 pixels = 80000 bytes of data, 28 blocks
        buffer = make_time_flux_fits(TIME, FLUX, before_table=image_extension((100, 100), bitpix=-64))
        doc = decode_fits(buffer)
        assert doc.column_names == ("TIME", "FLUX")

    def test_scan_budget_exhausted(self) -> None:
        buffer = make_time_flux_fits(
            TIME, FLUX, before_table=image_extension() + image_extension()
        )
        with pytest.raises(NoBinaryTableError) as exc_info:
            decode_fits(buffer, config=DecoderConfig(max_hdu_scan=2))
        assert exc_info.value.context["hdus_scanned"] == 2
        assert decode_fits(buffer, config=DecoderConfig(max_hdu_scan=3)).row_count == 4

    def test_default_budget_is_ten_hdus(self) -> None:
        nine = b"".join(image_extension((2,)) for _ in range(9))
        ten = nine + image_extension((2,))
        assert decode_fits(make_time_flux_fits(TIME, FLUX, before_table=nine)).row_count == 4
        with pytest.raises(NoBinaryTableError):
            decode_fits(make_time_flux_fits(TIME, FLUX, before_table=ten))

    def test_primary_data_is_skipped(self) -> None:
        # 1-D 16-bit primary array ahead of the table
        primary = (
            b"".join(
                [
                    card("SIMPLE", True),
                    card("BITPIX", 16),
                    card("NAXIS", 1),
                    card("NAXIS1", 2000),
                ]
            )
            + card("END")
        )
        primary = pad_block(primary, fill=b" ") + pad_block(b"\x01" * 4000)
        body = rows_bytes([("TIME", ">f8", [7.0])])
        table = bintable_header([ColumnSpec("TIME", "1D")], row_stride=8, row_count=1)
        buffer = primary + table + pad_block(body)
        doc = decode_fits(buffer)
        assert doc.table["TIME"] == (7.0,)

    def test_truncated_table_data(self, caplog: pytest.LogCaptureFixture) -> None:
        buffer = make_time_flux_fits(TIME, FLUX)
        cut = buffer[: -BLOCK + 30]  # keeps two full rows and part of the third
        with caplog.at_level(logging.WARNING, logger="exoscope.fits.decoder"):
            doc = decode_fits(cut)
        assert doc.table["TIME"][:2] == tuple(TIME[:2])
        # the partial third row is kept with missing cells; the fourth never starts
        assert doc.row_count == 3
        assert doc.table["TIME"][2] is None
        assert len(doc.table["FLUX"]) == 3
        assert any("truncated" in w for w in doc.warnings)
        assert any("row count capped" in w for w in doc.warnings)

    def test_table_header_without_end(self) -> None:
        buffer = primary_header() + bintable_header(
            [ColumnSpec("TIME", "1D")], row_stride=8, row_count=0, end=False
        )
        doc = decode_fits(buffer)
        assert doc.column_names == ("TIME",)
        assert doc.row_count == 0
        assert any("END" in w for w in doc.warnings)
        with pytest.raises(FitsDecodeError) as exc_info:
            decode_fits(buffer, config=DecoderConfig(require_end_card=True))
        assert exc_info.value.error_type is ErrorType.TRUNCATED_HEADER

    def test_bintable_without_decodable_columns(self) -> None:
        body = rows_bytes([("LABEL", "S4", [b"abcd"])])
        buffer = (
            primary_header()
            + bintable_header([ColumnSpec("LABEL", "4A")], row_stride=4, row_count=1)
            + pad_block(body)
        )
        doc = decode_fits(buffer)
        assert doc.column_names == ()
        assert dict(doc.table) == {}
        assert doc.row_count == 1

    def test_huge_naxis_is_bounded(self, caplog: pytest.LogCaptureFixture) -> None:
        huge = 999_999_999
        primary = header_block([card("SIMPLE", True), card("BITPIX", 8), card("NAXIS", huge)])
        image = header_block(
            [card("XTENSION", "IMAGE"), card("BITPIX", 16), card("NAXIS", huge)]
        )
        body = rows_bytes([("TIME", ">f8", [3.5])])
        buffer = (
            primary
            + image
            + bintable_header([ColumnSpec("TIME", "1D")], row_stride=8, row_count=1)
            + pad_block(body)
        )
        start = time.perf_counter()
        with caplog.at_level(logging.WARNING, logger="exoscope.fits.decoder"):
            doc = decode_fits(buffer)
        assert time.perf_counter() - start < 2.0
        assert doc.table["TIME"] == (3.5,)
        assert "NAXIS=999999999 exceeds 999" in caplog.text

    def test_missing_axis_means_no_image_data(self) -> None:
        image = header_block(
            [
                card("XTENSION", "IMAGE"),
                card("BITPIX", 8),
                card("NAXIS", 3),
                card("NAXIS1", 100),
                card("NAXIS3", 100),
            ]
        )
        doc = decode_fits(make_time_flux_fits(TIME, FLUX, before_table=image))
        assert doc.table["TIME"] == tuple(TIME)

    def test_hostile_row_count_without_data(self) -> None:
        buffer = primary_header() + bintable_header(
            [ColumnSpec("TIME", "1D")], row_stride=8, row_count=10**11
        )
        doc = decode_fits(buffer)
        assert doc.row_count == 0
        assert doc.table["TIME"] == ()
        assert any("NAXIS2=100000000000" in w for w in doc.warnings)

    def test_hostile_row_count_keeps_rows_present(self) -> None:
        body = rows_bytes([("TIME", ">f8", [1.0, 2.0])])
        buffer = (
            primary_header()
            + bintable_header([ColumnSpec("TIME", "1D")], row_stride=8, row_count=10**11)
            + pad_block(body)
        )
        doc = decode_fits(buffer)
        assert doc.row_count == BLOCK // 8
        assert doc.table["TIME"][:3] == (1.0, 2.0, 0.0)
        assert len(doc.table["TIME"]) == doc.row_count

    def test_zero_row_width_with_columns_has_no_rows(self) -> None:
        buffer = (
            primary_header()
            + bintable_header([ColumnSpec("TIME", "1D")], row_stride=0, row_count=10**11)
            + pad_block(b"\0" * 8)
        )
        doc = decode_fits(buffer)
        assert doc.row_count == 0
        assert doc.table["TIME"] == ()


class TestAstropyCrossCheck:
    """Decode files written by astropy.io.fits."""

    @pytest.fixture
    def fits_module(self):
        return pytest.importorskip("astropy.io.fits")

    def _write(self, fits, hdus) -> bytes:
        stream = io.BytesIO()
        fits.HDUList(hdus).writeto(stream)
        return stream.getvalue()

    def test_lightcurve_product(self, fits_module) -> None:
        fits = fits_module
        n = 257
        time = 1325.0 + np.arange(n) * (2.0 / 1440.0)
        flux = np.linspace(0.99, 1.01, n).astype(np.float32)
        flux[[3, 100]] = np.nan
        quality = np.zeros(n, dtype=np.int32)
        quality[5] = 128
        primary = fits.PrimaryHDU()
        primary.header["OBJECT"] = "TIC 261136679"
        primary.header["TELESCOP"] = "TESS"
        table = fits.BinTableHDU.from_columns(
            [
                fits.Column(name="TIME", format="D", unit="BJD - 2457000, days", array=time),
                fits.Column(name="SAP_FLUX", format="E", unit="e-/s", array=flux),
                fits.Column(name="QUALITY", format="J", array=quality),
                fits.Column(name="FLAGS", format="I", array=np.arange(n, dtype=np.int16)),
                fits.Column(name="MASK", format="B", array=(np.arange(n) % 256).astype(np.uint8)),
            ],
            name="LIGHTCURVE",
        )
        aperture = fits.ImageHDU(np.ones((11, 13), dtype=np.int32), name="APERTURE")

        doc = decode_fits(self._write(fits, [primary, aperture, table]))

        assert doc.row_count == n
        assert doc.column_names == ("TIME", "SAP_FLUX", "QUALITY", "FLAGS", "MASK")
        assert doc.primary_header.get_value("OBJECT") == "TIC 261136679"
        assert doc.extension_header.get_value("EXTNAME") == "LIGHTCURVE"
        np.testing.assert_allclose(doc.table["TIME"], time)
        sap = doc.as_array("SAP_FLUX")
        np.testing.assert_array_equal(np.isnan(sap), np.isnan(flux))
        np.testing.assert_allclose(sap[~np.isnan(flux)], flux[~np.isnan(flux)])
        assert doc.table["QUALITY"][5] == 128
        assert doc.table["FLAGS"] == tuple(range(n))
        assert doc.table["MASK"][255] == 255
        assert doc.table["MASK"][256] == 0
        assert doc.unit("SAP_FLUX") == "e-/s"

    def test_string_column_between_numeric_columns(self, fits_module) -> None:
        fits = fits_module
        table = fits.BinTableHDU.from_columns(
            [
                fits.Column(name="TIME", format="D", array=np.array([1.0, 2.0])),
                fits.Column(name="NAME", format="5A", array=np.array(["alpha", "beta"])),
                fits.Column(name="FLUX", format="E", array=np.array([3.0, 4.0], dtype=np.float32)),
            ]
        )
        doc = decode_fits(self._write(fits, [fits.PrimaryHDU(), table]))
        assert doc.column_names == ("TIME", "FLUX")
        assert doc.table["FLUX"] == (3.0, 4.0)

    def test_primary_with_data(self, fits_module) -> None:
        fits = fits_module
        primary = fits.PrimaryHDU(np.arange(1000, dtype=np.float32))
        table = fits.BinTableHDU.from_columns(
            [fits.Column(name="TIME", format="D", array=np.array([5.5]))]
        )
        doc = decode_fits(self._write(fits, [primary, table]))
        assert doc.table["TIME"] == (5.5,)


class TestReadFits:
    def test_reads_file(self, tmp_path: Path, time_flux_buffer: bytes) -> None:
        path = tmp_path / "kplr_llc.FITS"
        path.write_bytes(time_flux_buffer)
        doc = read_fits(path)
        assert doc.row_count == 4
        assert doc == decode_fits(time_flux_buffer)

    @pytest.mark.parametrize("name", ["hlsp.fit", "sector1.fts"])
    def test_accepts_short_suffixes(self, tmp_path: Path, time_flux_buffer: bytes, name: str) -> None:
        path = tmp_path / name
        path.write_bytes(time_flux_buffer)
        assert read_fits(path).column_names == ("TIME", "FLUX")

    def test_rejects_other_suffix(self, tmp_path: Path, time_flux_buffer: bytes) -> None:
        path = tmp_path / "lightcurve.csv"
        path.write_bytes(time_flux_buffer)
        with pytest.raises(FitsDecodeError) as exc_info:
            read_fits(path)
        assert exc_info.value.error_type is ErrorType.INVALID_INPUT
        assert read_fits(path, require_extension=False).row_count == 4

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            read_fits(tmp_path / "absent.fits")
