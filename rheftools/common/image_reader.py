import cv2
import numpy as np
from astropy.io import fits

from rheftools.rhef.errors import PreconditionError
from rheftools.rhef.pipeline import ImageHeader

FITS_EXTENSIONS = (".fits", ".fit", ".fts", ".fits.gz", ".fit.gz", ".fts.gz")


def open_image(path: str) -> tuple[ImageHeader, np.ndarray]:
    """
    Open a FITS or TIFF/PNG/JPEG image as a 2D array together with its geometry.
    :param path: Path to the image file
    :return: Header with dimensions and center, and the image data
    :raises PreconditionError: If the file holds no 2D image
    """
    if path.lower().endswith(FITS_EXTENSIONS):
        return _open_fits_image(path)
    image = _open_raster_image(path)
    return ImageHeader.for_image(image.shape), image


def _open_fits_image(path: str) -> tuple[ImageHeader, np.ndarray]:
    """
    Read the first HDU with 2D data. Compressed images (e.g. SDO/AIA) live in the
    first extension, so the primary HDU alone is not enough.
    """
    with fits.open(path) as hdul:
        for hdu in hdul:
            if hdu.data is not None and hdu.data.ndim == 2:
                data = np.asarray(hdu.data, dtype=np.float64)
                header = ImageHeader.from_fits_header(hdu.header)
                if (header.naxis2, header.naxis1) != data.shape:
                    header = ImageHeader(
                        naxis1=data.shape[1],
                        naxis2=data.shape[0],
                        crpix1=header.crpix1,
                        crpix2=header.crpix2,
                    )
                return header, data
    raise PreconditionError(f"No 2D image data found in {path}")


def _open_raster_image(path: str) -> np.ndarray:
    """
    Read a raster image and return it as a normalized 2D float32 array.
    Colour images are averaged to grayscale.
    """
    image = cv2.imread(path, flags=cv2.IMREAD_UNCHANGED)
    if image is None:
        raise PreconditionError(f"Could not read image {path}")

    if image.dtype == np.uint8:
        image = np.float32(image) / 255.0
    elif image.dtype == np.uint16:
        image = np.float32(image) / 65535.0
    else:
        image = np.float32(image)

    if image.ndim == 3:
        # Ignore the alpha channel, channel order does not matter for the mean
        image = image[:, :, :3].mean(axis=2, dtype=np.float32)
    if image.ndim != 2:
        raise PreconditionError(f"Unsupported image shape {image.shape} in {path}")
    return image
