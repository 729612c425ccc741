from __future__ import annotations

import warnings
from dataclasses import dataclass
from enum import Enum

import numpy as np

from ..config import CalibrationConfig
from ..exceptions import CalibrationWarning
from ..logging import NullTrace, TraceSink, get_logger
from ..pricers.bachelier import straddle_atm
from ..types import ModelParameters, Wing
from .evaluator import expected_local_vol, forward, straddle
from .grid import SmileGrid
from .grid_builder import build_grid

_LOG = get_logger(__name__)

# relative sigma0 bump for the finite-difference Jacobian column
_SIGMA0_BUMP = 1e-6


class CalibrationStatus(str, Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"  # best effort, residuals may exceed tolerance


@dataclass(frozen=True, slots=True)
class CalibrationStep:
    """State priced in one calibration round, before its update."""

    iteration: int
    mu: float
    sigma0: float
    forward: float
    straddle: float
    forward_only: bool


@dataclass(frozen=True, slots=True)
class CalibrationResult:
    """Outcome of :func:`calibrate_atm`.

    Parameters
    ----------
    status : CalibrationStatus
        ``CONVERGED`` or ``MAX_ITERATIONS``.
    iterations : int
        Rounds actually run.
    mu, sigma0 : float
        Final forward shift and central local vol.
    forward, straddle : float
        Model forward and ATM straddle of the final grid (``alpha=1, nu=0``).
    forward_error, straddle_error : float
        ``forward - S0`` and ``straddle - straddle_target``.
    history : tuple[CalibrationStep, ...]
    summary : str
        One-line description of the outcome.
    """

    status: CalibrationStatus
    iterations: int
    mu: float
    sigma0: float
    forward: float
    straddle: float
    forward_error: float
    straddle_error: float
    history: tuple[CalibrationStep, ...]
    summary: str

    @property
    def converged(self) -> bool:
        return self.status is CalibrationStatus.CONVERGED


@dataclass(frozen=True, slots=True)
class AtmAdjustment:
    """Post-calibration scale ``alpha`` and shift ``nu`` of the level."""

    alpha: float
    nu: float
    forward: float
    straddle: float


def straddle_target(params: ModelParameters) -> float:
    return straddle_atm(sigma=params.sigma_atm, tau=params.T)


def _newton_step(
    params: ModelParameters,
    grid: SmileGrid,
    fwd: float,
    st: float,
    target: float,
    forward_only: bool,
) -> tuple[float, float]:
    """``(d_mu, d_sigma0)`` of one Newton step on the forward and straddle errors.

    The ``mu`` column of the Jacobian is analytic (see
    :func:`expected_local_vol`); the ``sigma0`` column is a forward difference
    over a rebuilt grid.
    """
    S0 = params.S0
    dF_dmu = -expected_local_vol(grid)
    d_mu_only = -(fwd - S0) / dF_dmu
    if forward_only:
        return d_mu_only, 0.0

    dD_dmu = expected_local_vol(grid, Wing.LEFT) - expected_local_vol(grid, Wing.RIGHT)
    h = _SIGMA0_BUMP * grid.sigma0
    bumped = build_grid(
        params,
        mu=grid.mu,
        sigma0=grid.sigma0 + h,
        extrapolation_stdevs=grid.extrapolation_stdevs,
    )
    dF_ds = (forward(bumped) - fwd) / h
    dD_ds = (straddle(bumped, S0) - st) / h

    jac = np.array([[dF_dmu, dF_ds], [dD_dmu, dD_ds]], dtype=np.float64)
    rhs = -np.array([fwd - S0, st - target], dtype=np.float64)
    try:
        step = np.linalg.solve(jac, rhs)
    except np.linalg.LinAlgError:
        step = np.array([np.nan, np.nan])
    if not np.all(np.isfinite(step)):
        _LOG.debug(
            "singular ATM Jacobian at mu=%g sigma0=%g, using diagonal step",
            grid.mu,
            grid.sigma0,
        )
        return d_mu_only, grid.sigma0 * (target / st - 1.0)

    d_mu, d_sigma0 = float(step[0]), float(step[1])
    # keep sigma0 positive
    while grid.sigma0 + d_sigma0 <= 0.0:
        d_mu *= 0.5
        d_sigma0 *= 0.5
    return d_mu, d_sigma0


def calibrate_atm(
    params: ModelParameters,
    config: CalibrationConfig,
    trace: TraceSink | None = None,
) -> tuple[SmileGrid, CalibrationResult]:
    """Calibrate ``mu`` and ``sigma0`` to the forward and the ATM straddle.

    Each round prices the current grid and checks it: a round outside the
    forward-only warm-up converges when the forward error is below ``S0_tol``
    and the proposed ``sigma0`` change is below ``sigma0_tol``, and the priced
    grid is returned as is. Otherwise ``(mu, sigma0)`` takes one Newton step
    (``mu`` alone during the first ``only_forward_calibration_iters`` rounds)
    and the grid is rebuilt.

    Hitting ``max_calibration_iters`` is not an error: the last state is
    returned with status ``MAX_ITERATIONS`` and a :class:`CalibrationWarning`.
    """
    trace = NullTrace() if trace is None else trace
    S0 = params.S0
    target = straddle_target(params)
    stdevs = config.extrapolation_stdevs

    mu = config.mu_seed
    sigma0 = params.sigma0
    grid = build_grid(params, mu=mu, sigma0=sigma0, extrapolation_stdevs=stdevs, trace=trace)

    history: list[CalibrationStep] = []
    status = CalibrationStatus.MAX_ITERATIONS
    for it in range(1, config.max_calibration_iters + 1):
        fwd = forward(grid)
        st = straddle(grid, S0)
        forward_only = it <= config.only_forward_calibration_iters
        history.append(
            CalibrationStep(
                iteration=it,
                mu=mu,
                sigma0=sigma0,
                forward=fwd,
                straddle=st,
                forward_only=forward_only,
            )
        )

        d_fwd = fwd - S0
        d_mu, d_sigma0 = _newton_step(params, grid, fwd, st, target, forward_only)
        if trace.enabled:
            trace.record(
                f"iter {it}: mu={mu:.10g} sigma0={sigma0:.10g} forward={fwd:.10g} "
                f"straddle={st:.10g} target={target:.10g} dmu={d_mu:.4g} "
                f"dsigma0={d_sigma0:.4g}{' (forward only)' if forward_only else ''}"
            )

        if (
            not forward_only
            and abs(d_fwd) < config.S0_tol
            and abs(d_sigma0) < config.sigma0_tol
        ):
            status = CalibrationStatus.CONVERGED
            break

        mu += d_mu
        sigma0 += d_sigma0
        grid = build_grid(
            params, mu=mu, sigma0=sigma0, extrapolation_stdevs=stdevs, trace=trace
        )

    fwd = forward(grid)
    st = straddle(grid, S0)
    summary = (
        f"status={status.value} iters={len(history)} mu={mu:.6g} sigma0={sigma0:.6g} "
        f"fwd_err={fwd - S0:.3g} straddle_err={st - target:.3g}"
    )
    if status is CalibrationStatus.MAX_ITERATIONS:
        message = (
            f"ATM calibration did not converge within "
            f"{config.max_calibration_iters} iterations ({summary})"
        )
        if trace.enabled:
            trace.record(message)
        _LOG.warning(message)
        warnings.warn(message, CalibrationWarning, stacklevel=3)
    elif trace.enabled:
        trace.record(f"ATM calibration converged ({summary})")

    result = CalibrationResult(
        status=status,
        iterations=len(history),
        mu=mu,
        sigma0=sigma0,
        forward=fwd,
        straddle=st,
        forward_error=fwd - S0,
        straddle_error=st - target,
        history=tuple(history),
        summary=summary,
    )
    return grid, result


def adjust_atm(
    grid: SmileGrid,
    target: float,
    trace: TraceSink | None = None,
) -> AtmAdjustment:
    """Solve for ``(alpha, nu)`` matching forward and ATM straddle exactly.

    With ``F = E[S]`` and ``D = E|S - F|`` of the calibrated grid, the adjusted
    level ``alpha S + nu`` has forward ``alpha F + nu`` and, once that forward
    equals ``S0``, ATM straddle ``alpha D``. Both conditions form the linear
    system ``[[F, 1], [D, 0]] (alpha, nu) = (S0, target)``. The vol grid is
    left untouched.
    """
    trace = NullTrace() if trace is None else trace
    F = forward(grid)
    D = straddle(grid, F)
    lhs = np.array([[F, 1.0], [D, 0.0]], dtype=np.float64)
    rhs = np.array([grid.S0, target], dtype=np.float64)
    alpha, nu = (float(v) for v in np.linalg.solve(lhs, rhs))

    adj = AtmAdjustment(
        alpha=alpha,
        nu=nu,
        forward=forward(grid, alpha, nu),
        straddle=straddle(grid, grid.S0, alpha, nu),
    )
    if trace.enabled:
        trace.record(
            f"ATM adjuster: F={F:.10g} D={D:.10g} alpha={alpha:.10g} nu={nu:.10g} "
            f"forward={adj.forward:.10g} straddle={adj.straddle:.10g}"
        )
    return adj
