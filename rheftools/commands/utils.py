import click
import matplotlib.pyplot as plt

from rheftools.common.circle_finder import find_circle, normalize_for_detection
from rheftools.common.image_reader import open_image
from rheftools.common.quicklook import save_quicklook, show_quicklook


@click.group("utils")
def utils_group():
    """
    Utility commands for inspecting images.
    """
    pass


@utils_group.command()
@click.argument(
    "image_path", type=click.Path(exists=True, dir_okay=False, readable=True)
)
@click.option("--min-radius", default=100, help="Minimum radius of the disk in pixels.")
@click.option("--max-radius", default=2000, help="Maximum radius of the disk in pixels.")
@click.option(
    "--plot-circle", is_flag=True, help="Plot the detected circle on the image."
)
def find_disk(image_path: str, min_radius: int, max_radius: int, plot_circle: bool):
    """
    Find the solar disk or moon in an image and print its 0-based center.
    """
    header, image = open_image(image_path)
    circle = find_circle(image, min_radius=min_radius, max_radius=max_radius)
    if circle is None:
        raise click.ClickException("No disk found in the image.")

    header_x, header_y = header.center
    click.echo(
        f"Found disk at x: {circle.center[1]:.2f}, y: {circle.center[0]:.2f}, with radius: {circle.radius:.2f} pixels"
    )
    click.echo(f"Header center is x: {header_x:.2f}, y: {header_y:.2f}")
    if plot_circle:
        fig, ax = plt.subplots()
        ax.imshow(normalize_for_detection(image), cmap="gray")
        circle_patch = plt.Circle(
            (circle.center[1], circle.center[0]), circle.radius, color="red", fill=False
        )
        ax.add_patch(circle_patch)
        ax.set_title("Detected Disk")
        plt.axis("off")
        plt.show()


@utils_group.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--size", type=int, default=1024, help="Longer side of the quicklook in pixels.")
@click.option("--output-file", type=click.Path(dir_okay=False), help="Save the quicklook instead of showing it.")
def quicklook(image_path: str, size: int, output_file: str | None):
    """
    Show or save a downsampled preview of an image, e.g. a filtered result.
    Values are displayed on a fixed [0, 1] scale.
    """
    _, image = open_image(image_path)
    if output_file:
        click.echo(f"Saving quicklook to {output_file}")
        save_quicklook(image, output_file, size)
    else:
        show_quicklook(image, size, title=image_path)
