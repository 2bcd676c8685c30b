from dataclasses import dataclass
from typing import Iterator

import numpy as np

from rheftools.rhef.errors import InvalidParameterError, PreconditionError

# Bin numbers must stay well inside the int64 range
MAX_BIN_NUMBER = 2**62


@dataclass
class RadialBins:
    """
    Membership of pixels in integer-width radial bins.

    Only non-empty bins are stored. ``bin_indices`` holds their bin numbers in
    ascending order, and the i-th of them owns
    ``pixel_indices[offsets[i]:offsets[i + 1]]``, which are flat row-major pixel
    indices in ascending order. Bins between them are empty.
    """

    bin_indices: np.ndarray
    pixel_indices: np.ndarray
    offsets: np.ndarray
    binsize: float
    shape: tuple[int, int]

    @property
    def n_bins(self) -> int:
        """Number of bins from 0 up to the outermost occupied bin, empty ones included."""
        return int(self.bin_indices[-1]) + 1

    @property
    def counts(self) -> np.ndarray:
        """Number of pixels in each non-empty bin, in the order of ``bin_indices``."""
        return np.diff(self.offsets)

    def bin_count(self, bin_index: int) -> int:
        return self.members(bin_index).size

    def members(self, bin_index: int) -> np.ndarray:
        position = int(np.searchsorted(self.bin_indices, bin_index))
        if position >= self.bin_indices.size or self.bin_indices[position] != bin_index:
            return self.pixel_indices[:0]
        return self.pixel_indices[self.offsets[position] : self.offsets[position + 1]]

    def items(self) -> Iterator[tuple[int, np.ndarray]]:
        """Yield (bin index, member pixel indices) for every non-empty bin."""
        for position, bin_index in enumerate(self.bin_indices):
            yield int(bin_index), self.pixel_indices[
                self.offsets[position] : self.offsets[position + 1]
            ]

    def as_dict(self) -> dict[int, list[int]]:
        return {b: members.tolist() for b, members in self.items()}


def group_by_radius(radius: np.ndarray, binsize: float = 1.0) -> RadialBins:
    """
    Group pixel indices by radial bin, where bin = floor(radius / binsize).
    This is a histogram with reverse indices: a stable sort of the bin numbers
    keeps pixels of one bin together in row-major order. Memory scales with the
    number of pixels, not with the largest bin number.

    :param radius: 2D array of non-negative radii
    :param binsize: Width of a bin in pixels
    :return: Bin membership
    """
    if not np.isfinite(binsize) or binsize <= 0.0:
        raise InvalidParameterError(f"binsize must be positive, got {binsize}")
    if radius.ndim != 2 or radius.size == 0:
        raise PreconditionError("Radius map must be a non-empty 2D array.")
    if not np.all(np.isfinite(radius)) or radius.min() < 0.0:
        raise PreconditionError("Radius map must only contain finite non-negative values.")

    scaled_radius = radius.ravel() / binsize
    if not np.all(scaled_radius < MAX_BIN_NUMBER):
        raise InvalidParameterError(
            f"binsize {binsize} is too small for radii up to {radius.max():.6g} pixels"
        )

    bin_numbers = np.floor(scaled_radius).astype(np.int64)
    bin_indices, group_numbers, counts = np.unique(
        bin_numbers, return_inverse=True, return_counts=True
    )
    pixel_indices = np.argsort(group_numbers.ravel(), kind="stable")
    offsets = np.concatenate(([0], np.cumsum(counts)))

    return RadialBins(
        bin_indices=bin_indices,
        pixel_indices=pixel_indices,
        offsets=offsets,
        binsize=float(binsize),
        shape=(radius.shape[0], radius.shape[1]),
    )
