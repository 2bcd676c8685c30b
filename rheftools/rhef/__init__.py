from rheftools.rhef.binning import RadialBins, group_by_radius
from rheftools.rhef.equalization import SINGLETON_VALUE, equalize_annuli
from rheftools.rhef.errors import (
    InvalidParameterError,
    NumericDomainWarning,
    PreconditionError,
    RhefError,
)
from rheftools.rhef.grid import compute_radius_grid
from rheftools.rhef.pipeline import ImageHeader, ValidationMode, run_rhef
from rheftools.rhef.tone_curve import DEFAULT_YH, DEFAULT_YL, apply_tone_curve
