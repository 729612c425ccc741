from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from ..exceptions import ModelConfigurationError
from ..logging import NullTrace, TraceSink
from ..types import GridKind, ModelParameters, Wing, WingInput
from ..typing import FloatArray
from .grid import SmileGrid, assemble_grid
from .ode_solver import solve_wing
from .segments import SegmentBase


def _as_vector(values: Sequence[float] | FloatArray, name: str) -> FloatArray:
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    if arr.size == 0:
        raise ModelConfigurationError(f"{name} must not be empty")
    if not np.all(np.isfinite(arr)):
        raise ModelConfigurationError(f"{name} must be finite")
    return arr


def _wing_input(
    wing: Wing,
    points: Sequence[float] | FloatArray,
    slopes: Sequence[float] | FloatArray,
    *,
    kind: GridKind,
    origin: float,
) -> WingInput:
    label = "levels" if kind is GridKind.LEVELS else "coordinates"
    p = _as_vector(points, f"{wing.value} {label}")
    m = _as_vector(slopes, f"{wing.value} slopes")
    if p.shape != m.shape:
        raise ModelConfigurationError(
            f"{wing.value} wing has {p.size} {label} but {m.size} slopes"
        )
    steps = wing.sign * np.diff(np.concatenate([[origin], p]))
    if not np.all(steps > 0.0):
        direction = "increasing" if wing is Wing.RIGHT else "decreasing"
        raise ModelConfigurationError(
            f"{wing.value} {label} must be strictly {direction} away from {origin:g}"
        )
    p.setflags(write=False)
    m.setflags(write=False)
    return WingInput(points=p, slopes=m)


def validate_parameters(
    *,
    T: float,
    S0: float,
    sigma_atm: float,
    right_points: Sequence[float] | FloatArray,
    left_points: Sequence[float] | FloatArray,
    right_slopes: Sequence[float] | FloatArray,
    left_slopes: Sequence[float] | FloatArray,
    kind: GridKind,
    sigma0: float | None = None,
) -> ModelParameters:
    """Validate raw model inputs into :class:`ModelParameters`.

    Both public constructors of the model go through this function, so every
    configuration error surfaces here, before any calibration work.

    Raises
    ------
    ModelConfigurationError
        On non-positive expiry or volatility, empty or non-finite wings,
        grid/slope length mismatch, or non-monotone wing points.
    """
    T = float(T)
    S0 = float(S0)
    sigma_atm = float(sigma_atm)
    if not (math.isfinite(T) and T > 0.0):
        raise ModelConfigurationError("T must be finite and > 0")
    if not math.isfinite(S0):
        raise ModelConfigurationError("S0 must be finite")
    if not (math.isfinite(sigma_atm) and sigma_atm > 0.0):
        raise ModelConfigurationError("sigma_atm must be finite and > 0")

    seed = sigma_atm if sigma0 is None else float(sigma0)
    if not (math.isfinite(seed) and seed > 0.0):
        raise ModelConfigurationError("sigma0 must be finite and > 0")

    origin = S0 if kind is GridKind.LEVELS else 0.0
    right = _wing_input(Wing.RIGHT, right_points, right_slopes, kind=kind, origin=origin)
    left = _wing_input(Wing.LEFT, left_points, left_slopes, kind=kind, origin=origin)

    return ModelParameters(
        T=T, S0=S0, sigma_atm=sigma_atm, right=right, left=left, kind=kind, sigma0=seed
    )


def build_grid(
    params: ModelParameters,
    *,
    mu: float,
    sigma0: float,
    extrapolation_stdevs: float,
    trace: TraceSink | None = None,
) -> SmileGrid:
    """Derive the complementary grid and solve both wings for ``(mu, sigma0)``.

    Level inputs get their coordinates by integrating the segment ODE outward
    from the center; coordinate inputs (offsets from ``mu``) get their levels.
    """
    trace = NullTrace() if trace is None else trace
    center = SegmentBase(x=float(mu), S=params.S0, sigma=float(sigma0))
    half_width = extrapolation_stdevs * math.sqrt(params.T)

    wings = {}
    for wing in (Wing.RIGHT, Wing.LEFT):
        w = params.wing(wing)
        wings[wing] = solve_wing(
            wing,
            w.points,
            w.slopes,
            kind=params.kind,
            center=center,
            bound=float(mu) + wing.sign * half_width,
            trace=trace,
        )

    return assemble_grid(
        T=params.T,
        S0=params.S0,
        mu=mu,
        sigma0=sigma0,
        extrapolation_stdevs=extrapolation_stdevs,
        right=wings[Wing.RIGHT],
        left=wings[Wing.LEFT],
    )
