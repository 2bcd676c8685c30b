import os

import click
import joblib
import numpy as np
from astropy.io.fits.verify import VerifyError
from joblib import Parallel
from tqdm import tqdm

from rheftools.common.circle_finder import find_circle
from rheftools.common.image_reader import open_image
from rheftools.common.image_writer import save_image
from rheftools.common.quicklook import save_quicklook, show_quicklook
from rheftools.rhef.errors import RhefError
from rheftools.rhef.pipeline import ImageHeader, ValidationMode, run_rhef
from rheftools.rhef.tone_curve import DEFAULT_YH, DEFAULT_YL


@click.group("rhef")
def rhef_group():
    """Radial histogram equalizing filter (RHEF) commands."""
    pass


@rhef_group.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--yl", type=float, default=DEFAULT_YL, help="Tone curve exponent for the dark half.")
@click.option("--yh", type=float, default=DEFAULT_YH, help="Tone curve exponent for the bright half.")
@click.option("--binsize", type=float, default=1.0, help="Width of the radial bins in pixels.")
@click.option(
    "--center-x",
    type=float,
    help="0-based x coordinate of the disk center. Must be used together with --center-y.",
)
@click.option(
    "--center-y",
    type=float,
    help="0-based y coordinate of the disk center. Must be used together with --center-x.",
)
@click.option(
    "--find-disk",
    is_flag=True,
    help="Detect the disk in the image and use its center instead of the header center.",
)
@click.option("--disk-min-radius", type=int, default=100, help="Minimum disk radius in pixels for disk detection.")
@click.option("--disk-max-radius", type=int, default=2000, help="Maximum disk radius in pixels for disk detection.")
@click.option(
    "--output-file",
    type=click.Path(dir_okay=False),
    default="rhef_image.tiff",
    help="Output filename. Files ending in .fits are written as FITS, others as tiff.",
)
@click.option("--quicklook-file", type=click.Path(dir_okay=False), help="Also save a quicklook PNG to this path.")
@click.option("--quicklook-size", type=int, default=1024, help="Longer side of the quicklook in pixels.")
@click.option("--show", is_flag=True, help="Show a quicklook of the result.")
@click.option(
    "--minimal-validation",
    is_flag=True,
    help="Only check image and header shapes, skip checks for non-finite values.",
)
def apply(
    input_file: str,
    yl: float,
    yh: float,
    binsize: float,
    center_x: float | None,
    center_y: float | None,
    find_disk: bool,
    disk_min_radius: int,
    disk_max_radius: int,
    output_file: str,
    quicklook_file: str | None,
    quicklook_size: int,
    show: bool,
    minimal_validation: bool,
):
    """
    Apply the radial histogram equalizing filter to an image.
    Every one-pixel-wide ring around the disk center is histogram-equalized separately,
    and the result is passed through a two-segment gamma curve.
    """
    validate_center_parameters(center_x, center_y, find_disk)

    try:
        header, image = open_image(input_file)
        header = resolve_center(
            header, image, center_x, center_y, find_disk, disk_min_radius, disk_max_radius
        )
        output, _ = run_rhef(
            image,
            header,
            yl=yl,
            yh=yh,
            binsize=binsize,
            validation=ValidationMode.MINIMAL if minimal_validation else ValidationMode.FULL,
            show_progress=True,
            echo=click.echo,
        )
    except (RhefError, OSError, VerifyError) as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Saving filtered image to {output_file}")
    save_image(output, output_file, header)

    if quicklook_file:
        click.echo(f"Saving quicklook to {quicklook_file}")
        save_quicklook(output, quicklook_file, quicklook_size)
    if show:
        show_quicklook(output, quicklook_size, title=os.path.basename(input_file))


@rhef_group.command()
@click.argument("images_to_filter", nargs=-1, required=True)
@click.option("--n-jobs", default=-1, type=int, help="Number of parallel jobs. Default is -1 (all CPUs).")
@click.option(
    "--output-dir",
    default="output",
    type=click.Path(file_okay=False),
    help="Directory to save filtered images.",
)
@click.option("--yl", type=float, default=DEFAULT_YL, help="Tone curve exponent for the dark half.")
@click.option("--yh", type=float, default=DEFAULT_YH, help="Tone curve exponent for the bright half.")
@click.option("--binsize", type=float, default=1.0, help="Width of the radial bins in pixels.")
def batch(
    images_to_filter: list[str],
    n_jobs: int,
    output_dir: str,
    yl: float,
    yh: float,
    binsize: float,
):
    """
    Filter many images in parallel, using the center stored in each image header.
    The output will be 32-bit grayscale TIFF images named <input>_rhef.tiff.
    """
    output_dir_abs = os.path.abspath(output_dir)
    click.echo(f"Filtering {len(images_to_filter)} images...")
    click.echo("Writing filtered images to directory: " + output_dir_abs)
    os.makedirs(output_dir_abs, exist_ok=True)

    results = list(
        tqdm(
            total=len(images_to_filter),
            desc="Filtering images",
            unit="img",
            iterable=Parallel(n_jobs=n_jobs, prefer="processes", return_as="generator_unordered")(
                joblib.delayed(_open_and_filter)(path, output_dir_abs, yl, yh, binsize)
                for path in images_to_filter
            ),
        )
    )

    failures = [(path, error) for path, error in results if error is not None]
    for path, error in failures:
        click.echo(f"Failed to filter {path}: {error}", err=True)
    if failures:
        raise click.ClickException(
            f"{len(failures)} of {len(images_to_filter)} images could not be filtered"
        )


def _open_and_filter(
    image_path: str, output_dir: str, yl: float, yh: float, binsize: float
) -> tuple[str, str | None]:
    """
    Filter a single image and save it. Errors are returned instead of raised,
    so one bad file does not stop the whole batch.
    """
    orig_filename_without_ext = os.path.splitext(os.path.basename(image_path))[0]
    output_path = os.path.join(output_dir, f"{orig_filename_without_ext}_rhef.tiff")
    try:
        header, image = open_image(image_path)
        output, _ = run_rhef(image, header, yl=yl, yh=yh, binsize=binsize)
        save_image(output, output_path, header)
    # Malformed FITS headers surface as ValueError or VerifyError from astropy
    except (RhefError, OSError, ValueError, VerifyError) as e:
        return image_path, f"{type(e).__name__}: {e}"
    return image_path, None


def resolve_center(
    header: ImageHeader,
    image: np.ndarray,
    center_x: float | None,
    center_y: float | None,
    find_disk: bool,
    disk_min_radius: int,
    disk_max_radius: int,
) -> ImageHeader:
    """
    Pick the filter center: explicit coordinates, a detected disk, or the header center.
    """
    if center_x is not None and center_y is not None:
        return ImageHeader.for_image(image.shape, (center_x, center_y))
    if find_disk:
        click.echo(
            f"Finding disk in the image with radius range {disk_min_radius} to {disk_max_radius} px"
        )
        disk = find_circle(image, disk_min_radius, disk_max_radius)
        if disk is None:
            raise click.ClickException("No disk found in the image.")
        click.echo(
            f"Disk center x = {disk.center[1]:.2f}, y = {disk.center[0]:.2f}, radius: {disk.radius:.2f}"
        )
        return ImageHeader.for_image(image.shape, disk.center_xy)
    return header


def validate_center_parameters(
    center_x: float | None, center_y: float | None, find_disk: bool
) -> None:
    """
    Validate the center parameters for the apply command.
    Either both --center-x and --center-y, or neither of them, must be given,
    and explicit coordinates can not be combined with --find-disk.

    :raises click.BadParameter: If the parameters are not valid.
    """
    cx = center_x is not None
    cy = center_y is not None
    if cx != cy:
        raise click.BadParameter("--center-x and --center-y must be used together")
    if cx and find_disk:
        raise click.BadParameter("--find-disk can not be combined with --center-x and --center-y")
