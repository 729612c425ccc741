"""Per-wing ODE solution of the local-vol grid.

Starting from the center knot ``(mu, S0, sigma0)`` each wing is walked outward
one segment at a time. The next knot follows in closed form from the segment
slope (see :mod:`.segments`). A knot is rejected when its vol would be
non-positive or non-finite, when it breaks monotonicity, or when it lies on or
beyond the extrapolation bound. The first rejected segment is clipped at the
bound and the rest of the wing is dropped; beyond the bound the vol is flat.
"""

from __future__ import annotations

import math

import numpy as np

from ..logging import NullTrace, TraceSink
from ..types import GridKind, Wing
from ..typing import FloatArray
from .grid import WingGrid
from .segments import SegmentBase, coord_of, level_of, local_vol, vol_at_coord


def _finite_positive(v: float) -> bool:
    return math.isfinite(v) and v > 0.0


def _accept_level(
    wing: Wing, base: SegmentBase, m: float, S: float, bound: float
) -> float | None:
    """Coordinate of level ``S`` if the knot is admissible, else None."""
    if not math.isfinite(S) or wing.sign * (S - base.S) <= 0.0:
        return None
    if not _finite_positive(float(local_vol(base, m, S))):
        return None
    x = float(coord_of(base, m, S))
    if not math.isfinite(x) or wing.sign * (bound - x) <= 0.0:
        return None
    return x


def _clip_to_bound(
    base: SegmentBase, m: float, bound: float
) -> tuple[float, float, float]:
    """Level, vol and slope of a segment closed at the bound."""
    S = float(level_of(base, m, bound))
    sigma = float(vol_at_coord(base, m, bound))
    if math.isfinite(S) and _finite_positive(sigma):
        return S, sigma, m
    return float(level_of(base, 0.0, bound)), float(base.sigma), 0.0


def solve_wing(
    wing: Wing,
    points: FloatArray,
    slopes: FloatArray,
    *,
    kind: GridKind,
    center: SegmentBase,
    bound: float,
    trace: TraceSink | None = None,
) -> WingGrid:
    """Solve one wing outward from ``center``.

    Parameters
    ----------
    wing : Wing
    points : FloatArray
        Input levels, or coordinate offsets from ``center.x``, per ``kind``.
    slopes : FloatArray
        Slope of each segment; same length as ``points``.
    kind : GridKind
    center : SegmentBase
        ``(mu, S0, sigma0)``.
    bound : float
        Extrapolation bound in coordinates on this wing's side.
    trace : TraceSink, optional
        Receives a record when the wing is truncated before its last knot.

    Returns
    -------
    WingGrid
        At most ``len(points)`` knots, the last one on ``bound``.
    """
    trace = NullTrace() if trace is None else trace
    n = int(points.size)

    xs: list[float] = []
    Ss: list[float] = []
    sigmas: list[float] = []
    ms: list[float] = []
    truncated_at: int | None = None

    base = center
    for k in range(n):
        m = float(slopes[k])
        last = k == n - 1

        x: float | None = None
        if not last:
            if kind is GridKind.LEVELS:
                S = float(points[k])
                x = _accept_level(wing, base, m, S, bound)
            else:
                cand = center.x + float(points[k])
                if wing.sign * (bound - cand) > 0.0:
                    x = cand
                    S = float(level_of(base, m, x))
                    if not math.isfinite(S):
                        x = None

        if x is None:
            S, sigma, m = _clip_to_bound(base, m, bound)
            x = bound
            if not last:
                truncated_at = k
                if trace.enabled:
                    trace.record(
                        f"{wing.value} wing truncated at knot {k} of {n}: "
                        f"clipped to x={bound:.6g}, S={S:.6g}, sigma={sigma:.6g}"
                    )
        else:
            sigma = float(vol_at_coord(base, m, x))

        xs.append(x)
        Ss.append(S)
        sigmas.append(sigma)
        ms.append(m)
        if x == bound:
            break
        base = SegmentBase(x=x, S=S, sigma=sigma)

    return WingGrid(
        wing=wing,
        x=np.asarray(xs, dtype=np.float64),
        S=np.asarray(Ss, dtype=np.float64),
        sigma=np.asarray(sigmas, dtype=np.float64),
        slopes=np.asarray(ms, dtype=np.float64),
        truncated_at=truncated_at,
    )
