class RhefError(Exception):
    """Base class for errors raised by the radial histogram equalizing filter."""


class PreconditionError(RhefError, ValueError):
    """The input image or header is missing, empty or does not match."""


class InvalidParameterError(RhefError, ValueError):
    """A filter parameter is outside its valid range."""


class NumericDomainWarning(RuntimeWarning):
    """Equalized values fell outside [0, 1] and were clamped."""
