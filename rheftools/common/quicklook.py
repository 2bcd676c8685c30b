import cv2
import matplotlib.pyplot as plt
import numpy as np


def resample_for_display(image: np.ndarray, size: int) -> np.ndarray:
    """
    Resize an image so that its longer side is `size` pixels, keeping the aspect ratio.
    """
    assert image.ndim == 2, "Input image must be grayscale (2D array)."
    height, width = image.shape
    scale = size / max(height, width)
    new_width = max(int(round(width * scale)), 1)
    new_height = max(int(round(height * scale)), 1)
    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    return cv2.resize(
        image.astype(np.float32), (new_width, new_height), interpolation=interpolation
    )


def show_quicklook(image: np.ndarray, size: int = 1024, title: str = "RHEF"):
    fig, ax = plt.subplots()
    ax.imshow(resample_for_display(image, size), cmap="gray", vmin=0.0, vmax=1.0)
    ax.set_title(title)
    plt.axis("off")
    plt.show()


def save_quicklook(image: np.ndarray, output_path: str, size: int = 1024):
    """
    Save a downsampled grayscale preview, e.g. as PNG. Values are shown on a fixed [0, 1] scale.
    """
    plt.imsave(
        output_path,
        resample_for_display(image, size),
        cmap="gray",
        vmin=0.0,
        vmax=1.0,
    )
