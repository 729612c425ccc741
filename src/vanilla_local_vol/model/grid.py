from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from ..types import Wing
from ..typing import ArrayLike, FloatArray
from .segments import SegmentBase, coord_of, level_of, local_vol


@dataclass(frozen=True, slots=True)
class WingGrid:
    """Solved knots of one wing, ordered outward from the center.

    Knot ``k`` closes segment ``k``; ``slopes[k]`` is the local-vol slope on
    that segment. The last knot sits on the extrapolation bound.

    Attributes
    ----------
    wing : Wing
    x : FloatArray
        Coordinates, strictly moving away from ``mu``.
    S : FloatArray
        Levels, strictly moving away from ``S0``.
    sigma : FloatArray
        Local vol at the knots (strictly positive).
    slopes : FloatArray
        Slopes actually used, after truncation/flattening.
    truncated_at : int | None
        Index of the input knot where the solver stopped early, if any.
    """

    wing: Wing
    x: FloatArray
    S: FloatArray
    sigma: FloatArray
    slopes: FloatArray
    truncated_at: int | None = None

    def __len__(self) -> int:
        return int(self.x.size)


@dataclass(frozen=True, slots=True)
class SegmentTable:
    """All segments of a smile in increasing-x order, tails included.

    Entry 0 is the flat left tail ``(-inf, x_first]`` and the last entry the
    flat right tail ``[x_last, +inf)``. Each segment stores the knot it is
    anchored at (the one closer to the center; the inner knot for tails).
    """

    x_lo: FloatArray
    x_hi: FloatArray
    base_x: FloatArray
    base_S: FloatArray
    base_sigma: FloatArray
    slope: FloatArray

    def __len__(self) -> int:
        return int(self.slope.size)

    def base(self, idx: ArrayLike | slice) -> SegmentBase:
        return SegmentBase(
            x=self.base_x[idx], S=self.base_S[idx], sigma=self.base_sigma[idx]
        )


@dataclass(frozen=True, slots=True)
class SmileGrid:
    """Calibrated local-vol grid: center knot, both wings and segment table.

    Build instances with :func:`assemble_grid`.
    """

    T: float
    S0: float
    mu: float
    sigma0: float
    extrapolation_stdevs: float
    right: WingGrid
    left: WingGrid
    segments: SegmentTable

    @property
    def lower_bound_x(self) -> float:
        return self.mu - self.extrapolation_stdevs * math.sqrt(self.T)

    @property
    def upper_bound_x(self) -> float:
        return self.mu + self.extrapolation_stdevs * math.sqrt(self.T)

    # ---- merged, level-ordered views ----

    @property
    def x_grid(self) -> FloatArray:
        return np.concatenate([self.left.x[::-1], [self.mu], self.right.x])

    @property
    def S_grid(self) -> FloatArray:
        return np.concatenate([self.left.S[::-1], [self.S0], self.right.S])

    @property
    def sigma_grid(self) -> FloatArray:
        return np.concatenate([self.left.sigma[::-1], [self.sigma0], self.right.sigma])

    @property
    def slope_grid(self) -> FloatArray:
        """Slope of every inner segment, left to right (``len(S_grid) - 1``)."""
        return np.concatenate([self.left.slopes[::-1], self.right.slopes])

    # ---- point evaluation with flat extrapolation ----

    def segment_index_of_level(self, S: ArrayLike) -> np.ndarray:
        return np.searchsorted(self.S_grid, np.asarray(S, dtype=np.float64), side="right")

    def segment_index_of_coord(self, x: ArrayLike) -> np.ndarray:
        return np.searchsorted(self.x_grid, np.asarray(x, dtype=np.float64), side="right")

    def local_vol(self, S: ArrayLike) -> np.ndarray:
        idx = self.segment_index_of_level(S)
        return local_vol(self.segments.base(idx), self.segments.slope[idx], S)

    def level(self, x: ArrayLike) -> np.ndarray:
        idx = self.segment_index_of_coord(x)
        return level_of(self.segments.base(idx), self.segments.slope[idx], x)

    def coord(self, S: ArrayLike) -> np.ndarray:
        idx = self.segment_index_of_level(S)
        return coord_of(self.segments.base(idx), self.segments.slope[idx], S)


def _segment_table(
    mu: float, S0: float, sigma0: float, right: WingGrid, left: WingGrid
) -> SegmentTable:
    # anchors of the right segments: center, then right knots 0..n-2
    r_bx = np.concatenate([[mu], right.x[:-1]])
    r_bS = np.concatenate([[S0], right.S[:-1]])
    r_bs = np.concatenate([[sigma0], right.sigma[:-1]])
    l_bx = np.concatenate([[mu], left.x[:-1]])
    l_bS = np.concatenate([[S0], left.S[:-1]])
    l_bs = np.concatenate([[sigma0], left.sigma[:-1]])

    x_lo = np.concatenate([[-np.inf], left.x[::-1], [mu], right.x[:-1], [right.x[-1]]])
    x_hi = np.concatenate([[left.x[-1]], left.x[::-1][1:], [mu], right.x, [np.inf]])

    return SegmentTable(
        x_lo=x_lo,
        x_hi=x_hi,
        base_x=np.concatenate([[left.x[-1]], l_bx[::-1], r_bx, [right.x[-1]]]),
        base_S=np.concatenate([[left.S[-1]], l_bS[::-1], r_bS, [right.S[-1]]]),
        base_sigma=np.concatenate(
            [[left.sigma[-1]], l_bs[::-1], r_bs, [right.sigma[-1]]]
        ),
        slope=np.concatenate([[0.0], left.slopes[::-1], right.slopes, [0.0]]),
    )


def assemble_grid(
    *,
    T: float,
    S0: float,
    mu: float,
    sigma0: float,
    extrapolation_stdevs: float,
    right: WingGrid,
    left: WingGrid,
) -> SmileGrid:
    return SmileGrid(
        T=float(T),
        S0=float(S0),
        mu=float(mu),
        sigma0=float(sigma0),
        extrapolation_stdevs=float(extrapolation_stdevs),
        right=right,
        left=left,
        segments=_segment_table(float(mu), float(S0), float(sigma0), right, left),
    )
