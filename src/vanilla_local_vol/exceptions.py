class VanillaLocalVolError(Exception):
    """Base class for errors raised by the vanilla local-vol model."""


class ModelConfigurationError(VanillaLocalVolError, ValueError):
    """Raised when model inputs are inconsistent.

    This error is raised by :func:`validate_parameters` (and therefore by
    :meth:`VanillaLocalVolModel.from_levels` /
    :meth:`VanillaLocalVolModel.from_coordinates`) before any calibration work
    starts.

    Notes
    -----
    Typical causes are:

    - a wing grid and its slope vector of different lengths,
    - wing points that do not move strictly away from the center,
    - a non-positive expiry or ATM volatility.
    """


class CalibrationWarning(UserWarning):
    """Emitted when the ATM calibration stops at its iteration cap."""
