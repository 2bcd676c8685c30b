import numpy as np
import pytest
from astropy.io import fits

from rheftools.rhef.errors import InvalidParameterError, PreconditionError
from rheftools.rhef.pipeline import ImageHeader, ValidationMode, run_rhef


def _tone(v: float, yl: float = 0.7, yh: float = 0.4) -> float:
    if v <= 0.5:
        return 0.5 * (2.0 * v) ** yl
    return 0.5 * (2.0 - (2.0 * (1.0 - v)) ** yh)


class TestImageHeader:
    """Tests for the ImageHeader class."""

    def test_center_is_zero_based(self):
        header = ImageHeader(naxis1=4, naxis2=4, crpix1=2.5, crpix2=2.5)
        assert header.center == (1.5, 1.5)

    def test_for_image_defaults_to_middle(self):
        header = ImageHeader.for_image((3, 5))
        assert (header.naxis1, header.naxis2) == (5, 3)
        assert header.center == (2.0, 1.0)

    def test_for_image_with_center(self):
        header = ImageHeader.for_image((10, 20), (12.5, 3.0))
        assert header.crpix1 == 13.5
        assert header.crpix2 == 4.0
        assert header.center == (12.5, 3.0)

    def test_from_fits_header(self):
        hdu = fits.PrimaryHDU(np.zeros((6, 8), dtype=np.float32))
        hdu.header["CRPIX1"] = 4.25
        hdu.header["CRPIX2"] = 3.0
        header = ImageHeader.from_fits_header(hdu.header)
        assert header == ImageHeader(naxis1=8, naxis2=6, crpix1=4.25, crpix2=3.0)

    def test_from_fits_header_without_crpix(self):
        hdu = fits.PrimaryHDU(np.zeros((6, 8), dtype=np.float32))
        header = ImageHeader.from_fits_header(hdu.header)
        assert header.center == (3.5, 2.5)


class TestRunRhef:
    """Tests for the run_rhef pipeline."""

    def test_known_rings_end_to_end(self):
        """Test exact output values of a 4x4 image centered between the middle pixels."""
        image = np.arange(16, dtype=np.float64).reshape(4, 4)
        header = ImageHeader(naxis1=4, naxis2=4, crpix1=2.5, crpix2=2.5)

        output, elapsed = run_rhef(image, header)

        assert output.shape == (4, 4)
        assert elapsed >= 0.0
        flat = output.ravel()
        # Inner ring and corners both hold 4 increasing values
        ranks_of_four = [0.0, 1.0 / 3.0, 2.0 / 3.0, 1.0]
        expected_four = [_tone(v) for v in ranks_of_four]
        np.testing.assert_allclose(flat[[5, 6, 9, 10]], expected_four)
        np.testing.assert_allclose(flat[[0, 3, 12, 15]], expected_four)
        # Middle ring holds 8 increasing values
        expected_eight = [_tone(k / 7.0) for k in range(8)]
        np.testing.assert_allclose(flat[[1, 2, 4, 7, 8, 11, 13, 14]], expected_eight)

    def test_custom_exponents(self):
        image = np.arange(16, dtype=np.float64).reshape(4, 4)
        header = ImageHeader(naxis1=4, naxis2=4, crpix1=2.5, crpix2=2.5)
        output, _ = run_rhef(image, header, yl=2.0, yh=3.0)
        assert output.ravel()[6] == pytest.approx(_tone(1.0 / 3.0, 2.0, 3.0))
        assert output.ravel()[9] == pytest.approx(_tone(2.0 / 3.0, 2.0, 3.0))

    def test_zero_image_is_uniform(self):
        """Test that an all-zero image maps to 0.5 everywhere, before and after the tone curve."""
        image = np.zeros((9, 7))
        output, _ = run_rhef(image, ImageHeader.for_image(image.shape))
        np.testing.assert_array_equal(output, 0.5)

    def test_output_range_and_finiteness(self):
        rng = np.random.default_rng(3)
        image = rng.lognormal(size=(50, 60)) * 1e4
        output, _ = run_rhef(image, ImageHeader.for_image(image.shape, (30.3, 20.7)))
        assert np.all(np.isfinite(output))
        assert output.min() >= 0.0
        assert output.max() <= 1.0

    def test_radial_falloff_is_removed(self):
        """Test that a disk with a strong radial brightness gradient gets the same output level in every ring."""
        y, x = np.mgrid[:41, :41]
        radius = np.hypot(x - 20.0, y - 20.0)
        angle_pattern = np.cos(3.0 * np.arctan2(y - 20.0, x - 20.0))
        image = np.exp(-radius / 5.0) * (1.0 + 0.1 * angle_pattern)
        output, _ = run_rhef(image, ImageHeader.for_image(image.shape, (20.0, 20.0)))
        ring_means = [output[(radius >= r) & (radius < r + 1)].mean() for r in range(2, 19)]
        np.testing.assert_allclose(ring_means, 0.5, atol=0.1)

    def test_echo_receives_diagnostics(self):
        messages = []
        image = np.zeros((5, 5))
        run_rhef(image, ImageHeader.for_image(image.shape), echo=messages.append)
        assert len(messages) == 2
        assert "took" in messages[-1]

    def test_input_is_not_modified(self):
        image = np.arange(25, dtype=np.float32).reshape(5, 5)
        original = image.copy()
        run_rhef(image, ImageHeader.for_image(image.shape))
        np.testing.assert_array_equal(image, original)


class TestRunRhefErrors:
    """Tests for input validation in run_rhef."""

    def test_missing_image(self):
        with pytest.raises(PreconditionError):
            run_rhef(None, ImageHeader(4, 4, 2.5, 2.5))

    def test_missing_header(self):
        with pytest.raises(PreconditionError):
            run_rhef(np.zeros((4, 4)), None)

    def test_empty_image(self):
        with pytest.raises(PreconditionError):
            run_rhef(np.zeros((0, 4)), ImageHeader(4, 0, 2.5, 0.5))

    def test_one_dimensional_image(self):
        with pytest.raises(PreconditionError):
            run_rhef(np.zeros(16), ImageHeader(16, 1, 8.0, 1.0))

    def test_shape_mismatch(self):
        """Test that NAXIS1 is the width and NAXIS2 the height."""
        with pytest.raises(PreconditionError):
            run_rhef(np.zeros((4, 6)), ImageHeader(naxis1=4, naxis2=6, crpix1=2.0, crpix2=3.0))

    def test_non_finite_image_in_full_mode(self):
        image = np.zeros((4, 4))
        image[0, 0] = np.nan
        with pytest.raises(PreconditionError):
            run_rhef(image, ImageHeader.for_image(image.shape))

    def test_non_finite_image_in_minimal_mode(self):
        """Test that minimal validation lets NaN pixels through, and the output stays finite."""
        image = np.arange(16, dtype=np.float64).reshape(4, 4)
        image[0, 0] = np.nan
        output, _ = run_rhef(
            image, ImageHeader.for_image(image.shape), validation=ValidationMode.MINIMAL
        )
        assert np.all(np.isfinite(output))

    def test_non_finite_center(self):
        with pytest.raises(PreconditionError):
            run_rhef(np.zeros((4, 4)), ImageHeader(4, 4, np.nan, 2.5))

    def test_invalid_exponents(self):
        image = np.zeros((4, 4))
        header = ImageHeader.for_image(image.shape)
        with pytest.raises(InvalidParameterError):
            run_rhef(image, header, yl=0.0)
        with pytest.raises(InvalidParameterError):
            run_rhef(image, header, yh=-0.4)
        with pytest.raises(InvalidParameterError):
            run_rhef(image, header, yl=np.inf)

    def test_parameters_are_checked_before_inputs(self):
        with pytest.raises(InvalidParameterError):
            run_rhef(None, None, yl=-1.0)

    def test_invalid_binsize(self):
        image = np.zeros((4, 4))
        with pytest.raises(InvalidParameterError):
            run_rhef(image, ImageHeader.for_image(image.shape), binsize=0.0)

    def test_tiny_binsize_and_distant_center(self):
        """Test that extreme but valid geometry gives a finite image instead of exhausting memory."""
        image = np.array([[1.0, 2.0], [3.0, 4.0]])
        output, _ = run_rhef(image, ImageHeader.for_image(image.shape), binsize=1e-12)
        # All four pixels are equally far from the center, so they form one ring
        np.testing.assert_allclose(
            output.ravel(), [0.0, 0.5 * (2.0 / 3.0) ** 0.7, 0.5 * (2.0 - (2.0 / 3.0) ** 0.4), 1.0]
        )

        output, _ = run_rhef(image, ImageHeader.for_image(image.shape, (1e13, 0.0)))
        assert output.shape == (2, 2)
        assert np.all(np.isfinite(output))
