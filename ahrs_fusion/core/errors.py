"""Exceptions raised by the orientation filters."""


class FilterError(Exception):
    """Base exception for orientation filter failures."""
    pass


class InvalidInput(FilterError, ValueError):
    """A configuration or sensor value is non-finite or out of its domain."""
    pass


class ZeroNormInput(FilterError):
    """An accelerometer or magnetometer vector cannot be normalized."""
    pass


class DegenerateGradient(FilterError):
    """The correction gradient vanished; the estimate is already aligned."""
    pass


class DegenerateQuaternion(FilterError):
    """The integrated orientation has a zero or non-finite norm."""
    pass
