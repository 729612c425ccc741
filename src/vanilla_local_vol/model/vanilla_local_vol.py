"""Parametric local-volatility smile model for a single expiry.

The terminal level is ``S = S(X)`` with ``X ~ N(0, T)`` and ``dS/dx = sigma(S)``,
where ``sigma`` is piecewise linear in ``S`` between the wing knots and flat
beyond the extrapolation bound. Construction validates the inputs, calibrates
the forward shift ``mu`` and the central vol ``sigma0`` to the forward and the
ATM straddle, optionally applies the ``(alpha, nu)`` adjuster and then freezes.

Example
-------
>>> model = VanillaLocalVolModel.from_levels(
...     T=1.0, S0=100.0, sigma_atm=20.0,
...     Sp=[110.0, 130.0], Sm=[90.0, 70.0],
...     Mp=[0.1, 0.2], Mm=[-0.1, -0.2],
... )
>>> model.expectation("right", 105.0)  # doctest: +SKIP
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from ..config import CalibrationConfig
from ..logging import ListTrace, make_trace
from ..types import GridKind, ModelParameters, Wing
from ..typing import ArrayLike, FloatArray
from . import evaluator
from .calibration import (
    AtmAdjustment,
    CalibrationResult,
    adjust_atm,
    calibrate_atm,
    straddle_target,
)
from .grid import SmileGrid
from .grid_builder import validate_parameters


def _resolve_config(config: CalibrationConfig | None, controls: dict[str, Any]) -> CalibrationConfig:
    cfg = CalibrationConfig() if config is None else config
    return replace(cfg, **controls) if controls else cfg


def _as_output(values: np.ndarray, like: ArrayLike) -> float | FloatArray:
    if np.ndim(like) == 0:
        return float(values)
    return np.asarray(values, dtype=np.float64)


@dataclass(frozen=True, slots=True)
class VanillaLocalVolModel:
    """Calibrated, immutable local-vol smile.

    Use :meth:`from_levels` or :meth:`from_coordinates` to construct.

    Attributes
    ----------
    params : ModelParameters
        Validated inputs.
    config : CalibrationConfig
        Numerical controls used during construction.
    grid : SmileGrid
        Calibrated grid (``mu``, ``sigma0``, both wings).
    calibration : CalibrationResult
        Tagged calibration outcome with residuals and per-round history.
    adjustment : AtmAdjustment
        ``alpha = 1, nu = 0`` when the adjuster is disabled.
    trace : tuple[str, ...]
        Diagnostic records; empty unless ``enable_logging``.
    """

    params: ModelParameters
    config: CalibrationConfig
    grid: SmileGrid
    calibration: CalibrationResult
    adjustment: AtmAdjustment
    trace: tuple[str, ...] = ()

    # ---------------------------
    # Construction
    # ---------------------------

    @classmethod
    def from_levels(
        cls,
        T: float,
        S0: float,
        sigma_atm: float,
        Sp: Sequence[float] | FloatArray,
        Sm: Sequence[float] | FloatArray,
        Mp: Sequence[float] | FloatArray,
        Mm: Sequence[float] | FloatArray,
        *,
        config: CalibrationConfig | None = None,
        **controls: Any,
    ) -> VanillaLocalVolModel:
        """Build from level grids.

        Parameters
        ----------
        T : float
            Time to expiry.
        S0 : float
            Forward.
        sigma_atm : float
            ATM normal volatility.
        Sp, Sm : array_like
            Right levels (increasing, above ``S0``) and left levels
            (decreasing, below ``S0``).
        Mp, Mm : array_like
            Local-vol slopes on the segments ending at each knot.
        config : CalibrationConfig, optional
        **controls
            Overrides of individual :class:`CalibrationConfig` fields, e.g.
            ``max_calibration_iters=10`` or ``enable_logging=True``.

        Raises
        ------
        ModelConfigurationError
            On inconsistent inputs, before any calibration work.
        """
        cfg = _resolve_config(config, controls)
        params = validate_parameters(
            T=T,
            S0=S0,
            sigma_atm=sigma_atm,
            right_points=Sp,
            left_points=Sm,
            right_slopes=Mp,
            left_slopes=Mm,
            kind=GridKind.LEVELS,
        )
        return cls._calibrated(params, cfg)

    @classmethod
    def from_coordinates(
        cls,
        T: float,
        S0: float,
        sigma_atm: float,
        Xp: Sequence[float] | FloatArray,
        Xm: Sequence[float] | FloatArray,
        Mp: Sequence[float] | FloatArray,
        Mm: Sequence[float] | FloatArray,
        *,
        sigma0: float | None = None,
        config: CalibrationConfig | None = None,
        **controls: Any,
    ) -> VanillaLocalVolModel:
        """Build from coordinate grids.

        ``Xp`` (positive, increasing) and ``Xm`` (negative, decreasing) are
        offsets from the center coordinate ``mu``; the levels follow from the
        ODE for the current ``(mu, sigma0)``. ``sigma0`` seeds the central vol
        and defaults to ``sigma_atm``.
        """
        cfg = _resolve_config(config, controls)
        params = validate_parameters(
            T=T,
            S0=S0,
            sigma_atm=sigma_atm,
            right_points=Xp,
            left_points=Xm,
            right_slopes=Mp,
            left_slopes=Mm,
            kind=GridKind.COORDINATES,
            sigma0=sigma0,
        )
        return cls._calibrated(params, cfg)

    @classmethod
    def _calibrated(
        cls, params: ModelParameters, config: CalibrationConfig
    ) -> VanillaLocalVolModel:
        trace = make_trace(config.enable_logging)
        grid, result = calibrate_atm(params, config, trace)
        if config.adjust_atm:
            adjustment = adjust_atm(grid, straddle_target(params), trace)
        else:
            adjustment = AtmAdjustment(
                alpha=1.0, nu=0.0, forward=result.forward, straddle=result.straddle
            )
        records = trace.records if isinstance(trace, ListTrace) else ()
        return cls(
            params=params,
            config=config,
            grid=grid,
            calibration=result,
            adjustment=adjustment,
            trace=records,
        )

    # ---------------------------
    # Inspectors
    # ---------------------------

    def logging(self) -> tuple[str, ...]:
        return self.trace

    @property
    def time_to_expiry(self) -> float:
        return self.params.T

    @property
    def forward(self) -> float:
        return self.params.S0

    @property
    def sigma_atm(self) -> float:
        return self.params.sigma_atm

    @property
    def straddle_atm(self) -> float:
        """ATM straddle target implied by ``sigma_atm``."""
        return straddle_target(self.params)

    @property
    def grid_kind(self) -> GridKind:
        return self.params.kind

    @property
    def right_points(self) -> FloatArray:
        return self.params.right.points

    @property
    def left_points(self) -> FloatArray:
        return self.params.left.points

    @property
    def right_slopes(self) -> FloatArray:
        return self.params.right.slopes

    @property
    def left_slopes(self) -> FloatArray:
        return self.params.left.slopes

    @property
    def sigma0(self) -> float:
        return self.grid.sigma0

    @property
    def mu(self) -> float:
        return self.grid.mu

    @property
    def alpha(self) -> float:
        return self.adjustment.alpha

    @property
    def nu(self) -> float:
        return self.adjustment.nu

    @property
    def converged(self) -> bool:
        return self.calibration.converged

    @property
    def max_calibration_iters(self) -> int:
        return self.config.max_calibration_iters

    @property
    def only_forward_calibration_iters(self) -> int:
        return self.config.only_forward_calibration_iters

    @property
    def adjust_atm_flag(self) -> bool:
        return self.config.adjust_atm

    @property
    def enable_logging(self) -> bool:
        return self.config.enable_logging

    @property
    def use_initial_mu(self) -> bool:
        return self.config.use_initial_mu

    @property
    def initial_mu(self) -> float:
        return self.config.initial_mu

    @property
    def extrapolation_stdevs(self) -> float:
        return self.config.extrapolation_stdevs

    @property
    def lower_bound_x(self) -> float:
        return self.grid.lower_bound_x

    @property
    def upper_bound_x(self) -> float:
        return self.grid.upper_bound_x

    # ---------------------------
    # Full grids (level order)
    # ---------------------------

    def underlying_x_grid(self) -> FloatArray:
        return self.grid.x_grid

    def underlying_s_grid(self) -> FloatArray:
        return self.grid.S_grid

    def local_vol_grid(self) -> FloatArray:
        return self.grid.sigma_grid

    def local_vol_slope(self) -> FloatArray:
        return self.grid.slope_grid

    # ---------------------------
    # Point evaluation (raw model, before alpha/nu)
    # ---------------------------

    def local_vol(self, S: ArrayLike) -> float | FloatArray:
        """Local vol ``sigma(S)``; flat beyond the outermost knots."""
        return _as_output(self.grid.local_vol(S), S)

    def underlying_s(self, x: ArrayLike) -> float | FloatArray:
        """Level ``S(x)``."""
        return _as_output(self.grid.level(x), x)

    def underlying_x(self, S: ArrayLike) -> float | FloatArray:
        """Coordinate ``x(S)``, inverse of :meth:`underlying_s`."""
        return _as_output(self.grid.coord(S), S)

    # ---------------------------
    # Pricing
    # ---------------------------

    def expectation(self, wing: Wing | str, strike: float) -> float:
        """Forward price of an OTM-style option on the adjusted level.

        ``wing="right"`` prices ``(S - K)^+`` and ``wing="left"`` prices
        ``(K - S)^+``, both with ``S`` replaced by ``alpha S + nu``.
        """
        return evaluator.expectation(
            self.grid, Wing(wing), strike, self.alpha, self.nu
        )

    def variance(self, wing: Wing | str, strike: float) -> float:
        """Forward price of the power payoff ``((S - K)^+)^2`` (or put analogue)."""
        return evaluator.variance(self.grid, Wing(wing), strike, self.alpha, self.nu)

    def model_forward(self) -> float:
        return evaluator.forward(self.grid, self.alpha, self.nu)

    def model_straddle(self, strike: float | None = None) -> float:
        K = self.params.S0 if strike is None else float(strike)
        return evaluator.straddle(self.grid, K, self.alpha, self.nu)
