import numpy as np
from astropy.io import fits
from tifffile import tifffile

from rheftools.common.image_reader import FITS_EXTENSIONS
from rheftools.rhef.pipeline import ImageHeader


def save_image(image: np.ndarray, output_path: str, header: ImageHeader | None = None):
    """
    Save image as FITS or TIFF depending on the file extension.
    """
    if output_path.lower().endswith(FITS_EXTENSIONS):
        save_fits(image, output_path, header)
    else:
        save_tiff(image, output_path)


def save_tiff(image: np.ndarray, output_path: str):
    """
    Save image to the specified output path as 32-bit float tiff
    :param image: Image to save
    :param output_path: Path where the image will be saved
    :return: None
    """
    tifffile.imwrite(output_path, image.astype(np.float32), compression="zlib")


def save_fits(image: np.ndarray, output_path: str, header: ImageHeader | None = None):
    """
    Save image as FITS, overwriting an existing file.
    :param image: Image to save
    :param output_path: Path where the image will be saved
    :param header: Optional geometry written as CRPIX1/CRPIX2
    :return: None
    """
    hdu = fits.PrimaryHDU(image.astype(np.float32))
    if header is not None:
        hdu.header["CRPIX1"] = header.crpix1
        hdu.header["CRPIX2"] = header.crpix2
    hdu.header["HISTORY"] = "Radial histogram equalizing filter (RHEF) applied"
    hdu.writeto(output_path, overwrite=True)
