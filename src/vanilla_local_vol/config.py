from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CalibrationConfig:
    """Numerical controls for grid construction and ATM calibration.

    Parameters
    ----------
    max_calibration_iters : int, default 5
        Upper bound on calibration rounds. ``0`` keeps the seeds untouched.
    only_forward_calibration_iters : int, default 0
        Number of leading rounds that only move ``mu`` and hold ``sigma0``.
    adjust_atm : bool, default True
        Apply the post-calibration ``(alpha, nu)`` adjuster.
    enable_logging : bool, default False
        Collect a diagnostic trace during construction.
    use_initial_mu : bool, default False
        Seed ``mu`` with ``initial_mu`` instead of 0.
    initial_mu : float, default 0.0
    extrapolation_stdevs : float, default 10.0
        Distance of the extrapolation bound from ``mu``, in units of
        ``sqrt(T)``.
    sigma0_tol : float, default 1e-6
        Convergence tolerance on the change of ``sigma0`` per round.
    S0_tol : float, default 1e-6
        Convergence tolerance on the model forward error.
    """

    max_calibration_iters: int = 5
    only_forward_calibration_iters: int = 0
    adjust_atm: bool = True
    enable_logging: bool = False
    use_initial_mu: bool = False
    initial_mu: float = 0.0
    extrapolation_stdevs: float = 10.0
    sigma0_tol: float = 1e-6
    S0_tol: float = 1e-6

    def __post_init__(self) -> None:
        if self.max_calibration_iters < 0:
            raise ValueError("max_calibration_iters must be >= 0")
        if self.only_forward_calibration_iters < 0:
            raise ValueError("only_forward_calibration_iters must be >= 0")
        if not math.isfinite(self.initial_mu):
            raise ValueError("initial_mu must be finite")
        if not (self.extrapolation_stdevs > 0 and math.isfinite(self.extrapolation_stdevs)):
            raise ValueError("extrapolation_stdevs must be finite and > 0")
        if self.sigma0_tol <= 0 or self.S0_tol <= 0:
            raise ValueError("sigma0_tol and S0_tol must be > 0")

    @property
    def mu_seed(self) -> float:
        return float(self.initial_mu) if self.use_initial_mu else 0.0
