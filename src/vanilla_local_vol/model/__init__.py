"""Vanilla local-vol smile model.

The model is assembled from small layers: closed-form segment maps
(:mod:`.segments`), the per-wing ODE solver (:mod:`.ode_solver`), the grid
builder, the analytic evaluator and the ATM calibrator/adjuster. Most users
only need :class:`VanillaLocalVolModel`.
"""

from .calibration import (
    AtmAdjustment,
    CalibrationResult,
    CalibrationStatus,
    CalibrationStep,
)
from .grid import SmileGrid, WingGrid
from .vanilla_local_vol import VanillaLocalVolModel

__all__ = [
    "AtmAdjustment",
    "CalibrationResult",
    "CalibrationStatus",
    "CalibrationStep",
    "SmileGrid",
    "VanillaLocalVolModel",
    "WingGrid",
]
