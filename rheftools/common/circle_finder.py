from dataclasses import dataclass

import cv2
import numpy as np
import skimage.feature
from scipy.optimize import least_squares


@dataclass
class DetectedCircle:
    center: tuple[float, float]
    radius: float

    @property
    def center_xy(self) -> tuple[float, float]:
        """Center as 0-based (x, y), the order used by image headers."""
        return self.center[1], self.center[0]


def find_circle(
    image: np.ndarray, min_radius: int, max_radius: int
) -> DetectedCircle | None:
    """
    Find a bright disk, such as the solar disk or the moon, in a grayscale image.
    :param image: 2D image with arbitrary intensity scale
    :param min_radius: Minimum disk radius in pixels
    :param max_radius: Maximum disk radius in pixels
    :return: Disk with center as (y, x), or None if no disk was found
    """
    assert image.ndim == 2, "Input image must be grayscale (2D array)."

    processed_image = (normalize_for_detection(image) * 255).astype(np.uint8)

    detected_circles = cv2.HoughCircles(
        image=processed_image,
        method=cv2.HOUGH_GRADIENT,
        dp=2,  # Inverse of accumulator resolution, i.e. 2 means 1/2 resolution of original image
        minDist=image.shape[0] / 16.0,  # Minimum distance between found circles
        param1=50,  # Upper threshold for Canny edge detector
        param2=30,  # Accumulator threshold for finding images (smaller -> more circles detected)
        minRadius=min_radius,
        maxRadius=max_radius,
    )

    if detected_circles is None:
        return None

    x, y, r = detected_circles[0][0]
    circle = DetectedCircle(center=(float(y), float(x)), radius=float(r))
    return _refine_circle(processed_image, circle)


def normalize_for_detection(image: np.ndarray) -> np.ndarray:
    """
    Scale an image to [0, 1] between its 1st and 99.9th percentile and apply a
    square root stretch, so that faint limbs still produce edges.
    """
    finite = np.isfinite(image)
    if not np.any(finite):
        return np.zeros(image.shape, dtype=np.float32)
    low, high = np.percentile(image[finite], (1.0, 99.9))
    scale = high - low if high > low else 1.0
    normalized = np.clip((np.where(finite, image, low) - low) / scale, 0.0, 1.0)
    return (normalized**0.5).astype(np.float32)


def _refine_circle(image: np.ndarray, approx_circle: DetectedCircle) -> DetectedCircle:
    y0, x0 = map(int, approx_circle.center)
    r0 = approx_circle.radius
    r_crop = int(r0 * 1.3)  # Increase radius for cropping

    y_start = max(0, y0 - r_crop)
    y_end = min(image.shape[0], y0 + r_crop)
    x_start = max(0, x0 - r_crop)
    x_end = min(image.shape[1], x0 + r_crop)

    edges = skimage.feature.canny(image[y_start:y_end, x_start:x_end], sigma=2.0)

    y_indices, x_indices = np.nonzero(edges)
    x_indices = x_indices + x_start
    y_indices = y_indices + y_start

    # Only keep edge points within 30% of the expected radius
    distances = np.sqrt((x_indices - x0) ** 2 + (y_indices - y0) ** 2)
    mask = np.abs(distances - r0) < r0 * 0.3
    x_indices = x_indices[mask]
    y_indices = y_indices[mask]
    if x_indices.size < 3:
        return approx_circle

    def residuals(p):
        x0_fit, y0_fit, r_fit = p
        return np.sqrt((x_indices - x0_fit) ** 2 + (y_indices - y0_fit) ** 2) - r_fit

    # Bounds prevent drift away from the Hough estimate
    bounds = (
        [x0 - r0 * 0.2, y0 - r0 * 0.2, r0 * 0.7],
        [x0 + r0 * 0.2, y0 + r0 * 0.2, r0 * 1.3],
    )

    result = least_squares(
        residuals, x0=[x0, y0, r0], bounds=bounds, loss="soft_l1"  # Robust to outliers
    )

    if not result.success:
        return approx_circle

    xc, yc, rc = result.x
    return DetectedCircle(center=(float(yc), float(xc)), radius=float(rc))
