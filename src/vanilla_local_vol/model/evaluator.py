"""Analytic payoff integration over a solved :class:`SmileGrid`.

All prices are forward (undiscounted) expectations of payoffs in the adjusted
level ``S' = alpha S + nu``. Integration runs segment by segment with the
closed-form primitives and includes the flat tails to +/- infinity.
"""

from __future__ import annotations

import math

import numpy as np

from ..types import Wing
from .grid import SmileGrid
from .segments import normal_cdf, primitive_f, primitive_f_square, primitive_vol


def _strike_coord(grid: SmileGrid, strike: float, alpha: float, nu: float) -> float:
    S_star = (float(strike) - nu) / alpha
    x_k = float(grid.coord(S_star))
    if math.isnan(x_k):
        raise ValueError(f"strike {strike!r} does not map to a level on the grid")
    return x_k


def _limits(
    grid: SmileGrid, wing: Wing, x_k: float
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Active segment indices and clipped integration limits."""
    seg = grid.segments
    if wing is Wing.RIGHT:
        lo = np.maximum(seg.x_lo, x_k)
        hi = seg.x_hi
    else:
        lo = seg.x_lo
        hi = np.minimum(seg.x_hi, x_k)
    idx = np.flatnonzero(hi > lo)
    return idx, lo[idx], hi[idx]


def _moments(
    grid: SmileGrid,
    idx: np.ndarray,
    lo: np.ndarray,
    hi: np.ndarray,
    alpha: float,
    nu: float,
    *,
    second: bool = False,
) -> tuple[float, float, float]:
    """``(P, E[S' 1], E[S'^2 1])`` restricted to the given pieces."""
    seg = grid.segments
    base = seg.base(idx)
    m = seg.slope[idx]
    T = grid.T

    p0 = float(np.sum(normal_cdf(hi, T) - normal_cdf(lo, T)))
    p1 = float(
        np.sum(primitive_f(base, m, hi, T, alpha, nu) - primitive_f(base, m, lo, T, alpha, nu))
    )
    p2 = 0.0
    if second:
        p2 = float(
            np.sum(
                primitive_f_square(base, m, hi, T, alpha, nu)
                - primitive_f_square(base, m, lo, T, alpha, nu)
            )
        )
    return p0, p1, p2


def expectation(
    grid: SmileGrid,
    wing: Wing,
    strike: float,
    alpha: float = 1.0,
    nu: float = 0.0,
) -> float:
    """Forward price of ``(S' - K)^+`` (RIGHT) or ``(K - S')^+`` (LEFT)."""
    K = float(strike)
    idx, lo, hi = _limits(grid, wing, _strike_coord(grid, K, alpha, nu))
    if idx.size == 0:
        return 0.0
    p0, p1, _ = _moments(grid, idx, lo, hi, alpha, nu)
    return p1 - K * p0 if wing is Wing.RIGHT else K * p0 - p1


def variance(
    grid: SmileGrid,
    wing: Wing,
    strike: float,
    alpha: float = 1.0,
    nu: float = 0.0,
) -> float:
    """Forward price of ``((S' - K)^+)^2`` (RIGHT) or ``((K - S')^+)^2`` (LEFT)."""
    K = float(strike)
    idx, lo, hi = _limits(grid, wing, _strike_coord(grid, K, alpha, nu))
    if idx.size == 0:
        return 0.0
    p0, p1, p2 = _moments(grid, idx, lo, hi, alpha, nu, second=True)
    return p2 - 2.0 * K * p1 + K * K * p0


def forward(grid: SmileGrid, alpha: float = 1.0, nu: float = 0.0) -> float:
    """Model forward ``E[S']``."""
    seg = grid.segments
    idx = np.arange(len(seg))
    _, p1, _ = _moments(grid, idx, seg.x_lo, seg.x_hi, alpha, nu)
    return p1


def straddle(
    grid: SmileGrid, strike: float, alpha: float = 1.0, nu: float = 0.0
) -> float:
    """Forward price of ``|S' - K|``."""
    return expectation(grid, Wing.RIGHT, strike, alpha, nu) + expectation(
        grid, Wing.LEFT, strike, alpha, nu
    )


def expected_local_vol(grid: SmileGrid, wing: Wing | None = None) -> float:
    """``E[sigma(S)]``, restricted to one side of ``mu`` when ``wing`` is given.

    Since ``S`` depends on ``X - mu`` only, ``d E[S] / d mu`` equals
    ``-expected_local_vol(grid)`` and ``d E|S - S0| / d mu`` equals
    ``expected_local_vol(grid, Wing.LEFT) - expected_local_vol(grid, Wing.RIGHT)``.
    """
    seg = grid.segments
    if wing is None:
        idx, lo, hi = np.arange(len(seg)), seg.x_lo, seg.x_hi
    else:
        idx, lo, hi = _limits(grid, wing, grid.mu)
    base = seg.base(idx)
    m = seg.slope[idx]
    return float(
        np.sum(primitive_vol(base, m, hi, grid.T) - primitive_vol(base, m, lo, grid.T))
    )


__all__ = ["expectation", "expected_local_vol", "forward", "straddle", "variance"]
