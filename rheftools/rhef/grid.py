import numpy as np


def compute_radius_grid(
    width: int, height: int, center_x: float, center_y: float
) -> np.ndarray:
    """
    Compute the distance from the center for every pixel of a 2D image.

    :param width: Number of columns (NAXIS1)
    :param height: Number of rows (NAXIS2)
    :param center_x: 0-based column coordinate of the center
    :param center_y: 0-based row coordinate of the center
    :return: (height, width) array of radii in pixels
    """
    y, x = np.ogrid[:height, :width]
    return np.sqrt((x - center_x) ** 2 + (y - center_y) ** 2, dtype=np.float64)
