import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

import numpy as np

from rheftools.rhef.binning import group_by_radius
from rheftools.rhef.equalization import equalize_annuli
from rheftools.rhef.errors import InvalidParameterError, PreconditionError
from rheftools.rhef.grid import compute_radius_grid
from rheftools.rhef.tone_curve import (
    DEFAULT_YH,
    DEFAULT_YL,
    apply_tone_curve,
    validate_gamma,
)


class ValidationMode(StrEnum):
    MINIMAL = "minimal"
    FULL = "full"


@dataclass
class ImageHeader:
    """
    Image geometry needed by the filter. crpix1 and crpix2 follow the FITS
    convention, where the first pixel is 1.
    """

    naxis1: int
    naxis2: int
    crpix1: float
    crpix2: float

    @property
    def center(self) -> tuple[float, float]:
        """0-based (x, y) pixel coordinates of the reference pixel."""
        return self.crpix1 - 1.0, self.crpix2 - 1.0

    @classmethod
    def for_image(
        cls, shape: tuple[int, ...], center: tuple[float, float] | None = None
    ) -> "ImageHeader":
        """
        Build a header for an image array.
        :param shape: (height, width) of the image
        :param center: 0-based (x, y) center, defaults to the middle of the image
        """
        height, width = shape[:2]
        if center is None:
            center = ((width - 1) / 2.0, (height - 1) / 2.0)
        return cls(
            naxis1=int(width),
            naxis2=int(height),
            crpix1=float(center[0]) + 1.0,
            crpix2=float(center[1]) + 1.0,
        )

    @classmethod
    def from_fits_header(cls, header) -> "ImageHeader":
        """
        Read geometry from an astropy FITS header. Missing CRPIX keywords
        fall back to the middle of the image.
        """
        naxis1 = int(header.get("ZNAXIS1", header.get("NAXIS1", 0)))
        naxis2 = int(header.get("ZNAXIS2", header.get("NAXIS2", 0)))
        return cls(
            naxis1=naxis1,
            naxis2=naxis2,
            crpix1=float(header.get("CRPIX1", (naxis1 + 1) / 2.0)),
            crpix2=float(header.get("CRPIX2", (naxis2 + 1) / 2.0)),
        )


def run_rhef(
    image: np.ndarray,
    header: ImageHeader,
    yl: float | None = None,
    yh: float | None = None,
    binsize: float = 1.0,
    validation: ValidationMode = ValidationMode.FULL,
    show_progress: bool = False,
    echo: Callable[[str], None] | None = None,
) -> tuple[np.ndarray, float]:
    """
    Apply the Radial Histogram Equalizing Filter (RHEF) to an image.
    Every one-pixel-wide annulus around the header center is histogram-equalized
    on its own, and the result goes through a two-segment gamma curve.

    :param image: 2D image, not modified
    :param header: Image dimensions and center
    :param yl: Exponent for the dark half of the tone curve, defaults to 0.7
    :param yh: Exponent for the bright half of the tone curve, defaults to 0.4
    :param binsize: Width of the radial bins in pixels
    :param validation: How thoroughly the inputs are checked before filtering
    :param show_progress: Show a progress bar while equalizing
    :param echo: Optional callable receiving diagnostic messages
    :return: Filtered float64 image with values in [0, 1], and elapsed seconds
    :raises PreconditionError: If the image or header are missing or inconsistent
    :raises InvalidParameterError: If yl, yh or binsize are out of range
    """
    yl = DEFAULT_YL if yl is None else yl
    yh = DEFAULT_YH if yh is None else yh
    validate_gamma(yl, yh)
    if not np.isfinite(binsize) or binsize <= 0.0:
        raise InvalidParameterError(f"binsize must be positive, got {binsize}")
    validate_inputs(image, header, validation)
    image = np.asarray(image)

    start_time = time.perf_counter()

    center_x, center_y = header.center
    radius = compute_radius_grid(header.naxis1, header.naxis2, center_x, center_y)
    bins = group_by_radius(radius, binsize)
    if echo:
        echo(
            f"Equalizing {bins.bin_indices.size} annuli around "
            f"x = {center_x:.2f}, y = {center_y:.2f}"
        )

    equalized = equalize_annuli(image, bins, show_progress=show_progress)
    output = apply_tone_curve(equalized, yl, yh)

    elapsed = time.perf_counter() - start_time
    if echo:
        echo(f"RHEF with yl = {yl}, yh = {yh} took {elapsed:.3f} s")
    return output, elapsed


def validate_inputs(
    image: np.ndarray, header: ImageHeader, validation: ValidationMode
) -> None:
    """
    :raises PreconditionError: If the image or header are not usable.
    """
    if image is None:
        raise PreconditionError("No image given.")
    if header is None:
        raise PreconditionError("No header given.")
    image = np.asarray(image)
    if image.ndim != 2 or image.size == 0:
        raise PreconditionError(
            f"Image must be a non-empty 2D array, got shape {image.shape}."
        )
    if header.naxis1 <= 0 or header.naxis2 <= 0:
        raise PreconditionError(
            f"Header dimensions must be positive, got {header.naxis1} x {header.naxis2}."
        )
    if image.shape != (header.naxis2, header.naxis1):
        raise PreconditionError(
            f"Image shape {image.shape} does not match header NAXIS2 x NAXIS1 "
            f"= ({header.naxis2}, {header.naxis1})."
        )

    if validation == ValidationMode.FULL:
        if not np.issubdtype(image.dtype, np.number) or np.issubdtype(
            image.dtype, np.complexfloating
        ):
            raise PreconditionError(f"Image must be real-valued, got {image.dtype}.")
        if not np.all(np.isfinite(image)):
            raise PreconditionError("Image contains non-finite values.")
        if not np.all(np.isfinite(header.center)):
            raise PreconditionError(f"Header center {header.center} is not finite.")
