import numpy as np

from rheftools.rhef.errors import InvalidParameterError

DEFAULT_YL = 0.7
DEFAULT_YH = 0.4


def validate_gamma(yl: float, yh: float) -> None:
    """
    :raises InvalidParameterError: If either exponent is not a positive finite number.
    """
    for name, value in (("yl", yl), ("yh", yh)):
        if value is None or not np.isfinite(value) or value <= 0.0:
            raise InvalidParameterError(
                f"{name} must be a positive finite number, got {value}"
            )


def apply_tone_curve(
    image: np.ndarray, yl: float = DEFAULT_YL, yh: float = DEFAULT_YH
) -> np.ndarray:
    """
    Apply a two-segment gamma curve to an image with values in [0, 1].
    Values up to 0.5 are mapped with 0.5 * (2v)^yl, values above with
    0.5 * (2 - (2(1 - v))^yh). Both segments meet at 0.5.

    :param image: Image with values in [0, 1]
    :param yl: Exponent for the dark half, values below 1 brighten shadows
    :param yh: Exponent for the bright half, values below 1 darken highlights
    :return: New image with the curve applied
    """
    validate_gamma(yl, yh)

    v = np.clip(image, 0.0, 1.0)
    low = 0.5 * (2.0 * v) ** yl
    high = 0.5 * (2.0 - (2.0 * (1.0 - v)) ** yh)
    return np.where(v <= 0.5, low, high)
