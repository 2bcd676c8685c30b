import warnings

import numba
import numpy as np
from numba_progress import ProgressBar

from rheftools.rhef.binning import RadialBins
from rheftools.rhef.errors import NumericDomainWarning, PreconditionError

# Value given to the only pixel of a single-pixel bin, where k / (n - 1) is undefined
SINGLETON_VALUE = 0.5


@numba.jit(nogil=True)
def rank_equalize(values: np.ndarray, out: np.ndarray) -> None:
    """
    Map values to their normalized rank k / (n - 1) in [0, 1].
    Tied values all get the average of the ranks they span, so equal inputs
    always give equal outputs. Needs at least two values.

    :param values: 1D array of intensities of one bin
    :param out: 1D array of the same length, receives the equalized values
    """
    n = values.size
    order = np.argsort(values, kind="mergesort")
    last_rank = n - 1
    start = 0
    while start < n:
        end = start
        while end + 1 < n and values[order[end + 1]] == values[order[start]]:
            end += 1
        rank = 0.5 * (start + end) / last_rank
        for k in range(start, end + 1):
            out[order[k]] = rank
        start = end + 1


@numba.jit(nogil=True, parallel=True)
def _equalize_bins_loop(
    binned_values: np.ndarray,
    offsets: np.ndarray,
    singleton_value: float,
    progress_proxy: ProgressBar,
) -> np.ndarray:
    result = np.zeros_like(binned_values)
    for b in numba.prange(offsets.size - 1):
        start = offsets[b]
        end = offsets[b + 1]
        if end - start == 1:
            result[start] = singleton_value
        elif end - start > 1:
            rank_equalize(binned_values[start:end], result[start:end])
        progress_proxy.update(1)
    return result


def equalize_annuli(
    image: np.ndarray,
    bins: RadialBins,
    singleton_value: float = SINGLETON_VALUE,
    show_progress: bool = False,
) -> np.ndarray:
    """
    Histogram-equalize the image independently within every radial bin.

    :param image: 2D input image, not modified
    :param bins: Radial bin membership computed for the image shape
    :param singleton_value: Output value for bins that contain a single pixel
    :param show_progress: Show a progress bar over the bins
    :return: float64 image of the same shape with values in [0, 1]
    """
    if image.shape != bins.shape:
        raise PreconditionError(
            f"Image shape {image.shape} does not match bin shape {bins.shape}."
        )

    binned_values = np.ascontiguousarray(
        image.ravel()[bins.pixel_indices], dtype=np.float64
    )
    with ProgressBar(
        total=bins.bin_indices.size,
        unit="bin",
        desc="Equalizing annuli",
        disable=not show_progress,
    ) as progress_proxy:
        equalized_values = _equalize_bins_loop(
            binned_values, bins.offsets, float(singleton_value), progress_proxy
        )

    output = np.zeros(image.size, dtype=np.float64)
    output[bins.pixel_indices] = equalized_values
    output = output.reshape(image.shape)

    return clamp_unit_range(output)


def clamp_unit_range(image: np.ndarray) -> np.ndarray:
    """
    Clamp values into [0, 1], warning if anything had to be clamped.
    """
    out_of_range = (image < 0.0) | (image > 1.0)
    if np.any(out_of_range):
        warnings.warn(
            f"{np.count_nonzero(out_of_range)} equalized values outside [0, 1] were clamped",
            NumericDomainWarning,
            stacklevel=2,
        )
        return np.clip(image, 0.0, 1.0)
    return image
