"""
vanilla_local_vol

Parametric local-volatility smile model for a single expiry.

The package exposes the main user-facing objects at the top level, so you
can write, for example:

    from vanilla_local_vol import VanillaLocalVolModel, Wing
"""

from .config import CalibrationConfig
from .exceptions import (
    CalibrationWarning,
    ModelConfigurationError,
    VanillaLocalVolError,
)
from .model import (
    AtmAdjustment,
    CalibrationResult,
    CalibrationStatus,
    SmileGrid,
    VanillaLocalVolModel,
)
from .types import GridKind, Wing

__all__ = [
    # Types
    "Wing",
    "GridKind",
    "CalibrationConfig",
    # Model
    "VanillaLocalVolModel",
    "SmileGrid",
    "CalibrationResult",
    "CalibrationStatus",
    "AtmAdjustment",
    # Errors
    "VanillaLocalVolError",
    "ModelConfigurationError",
    "CalibrationWarning",
]
