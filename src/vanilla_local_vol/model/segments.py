"""Closed-form per-segment maps of the vanilla local-vol model.

On a segment the local vol is linear in the level,

    sigma(S) = sigma_b + m (S - S_b),

and the level solves ``dS/dx = sigma(S)`` with ``S(x_b) = S_b``. This gives

    S(x) = S_b + sigma_b / m * (exp(m (x - x_b)) - 1)      (m != 0)
    S(x) = S_b + sigma_b (x - x_b)                          (m == 0)

and ``sigma(S(x)) = sigma_b exp(m (x - x_b))``. The driving coordinate is
``X ~ N(0, T)``, so expectations of payoffs in ``S`` reduce to Gaussian
integrals with closed-form antiderivatives (``primitive_f``,
``primitive_f_square`` and ``primitive_vol``).

The exact antiderivatives divide by ``m`` and cancel badly for small slopes.
Below ``SERIES_SLOPE_TOL`` (measured as ``|m|`` times the coordinate scale of
the segment) the primitives integrate the Taylor expansion

    S(x) ~ S_b + sigma_b sum_{k=1..n} m^(k-1) d^k / k!,     d = x - x_b,

with ``n = SERIES_ORDER`` instead, which is exact at ``m == 0``.

These functions are unchecked: callers pass a base knot and slope that belong
together and levels that are reachable on the segment. All of them accept
NumPy arrays and broadcast.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy.special import log_ndtr, ndtr

from ..typing import ArrayLike

# |m| * (|x_b| + sqrt(T)) below this uses the Taylor expansion
SERIES_SLOPE_TOL = 0.05
SERIES_ORDER = 8

_INV_SQRT_2PI = 1.0 / math.sqrt(2.0 * math.pi)


@dataclass(frozen=True, slots=True)
class SegmentBase:
    """Knot a segment starts from: coordinate, level and local vol.

    Fields may hold equally shaped arrays to evaluate many segments at once.
    """

    x: ArrayLike
    S: ArrayLike
    sigma: ArrayLike


def _slope(m: ArrayLike) -> tuple[np.ndarray, np.ndarray]:
    """``(m == 0, m with zeros replaced by 1)`` for the exact maps."""
    m = np.asarray(m, dtype=np.float64)
    zero = m == 0.0
    return zero, np.where(zero, 1.0, m)


def _npdf(y: ArrayLike) -> np.ndarray:
    y = np.asarray(y, dtype=np.float64)
    return _INV_SQRT_2PI * np.exp(-0.5 * y * y)


def _exp_shifted_cdf(log_scale: ArrayLike, y: ArrayLike) -> np.ndarray:
    """``exp(log_scale) * Phi(y)`` evaluated in log space."""
    with np.errstate(over="ignore"):
        return np.exp(np.asarray(log_scale, dtype=np.float64) + log_ndtr(y))


def _shifted_moment_primitives(
    x_b: ArrayLike, y: np.ndarray, T: float, order: int
) -> list[np.ndarray]:
    """Antiderivatives ``N_k`` of ``(x - x_b)^k p(x)``, ``k = 0..order``, at ``x = y sqrt(T)``.

    Uses ``N_k = T (k - 1) N_{k-2} - x_b N_{k-1} - T (x - x_b)^(k-1) p(x)``.
    Density terms vanish at ``y = +/-inf``.
    """
    sqrt_t = math.sqrt(T)
    x_b = np.asarray(x_b, dtype=np.float64)
    finite = np.isfinite(y)
    yf = np.where(finite, y, 0.0)
    pdf = np.where(finite, _npdf(yf), 0.0) / sqrt_t
    d = yf * sqrt_t - x_b

    cdf = ndtr(y)
    out = [cdf, -T * pdf - x_b * cdf]
    d_pow = np.ones_like(d)
    for k in range(2, order + 1):
        d_pow = d_pow * d
        out.append(T * (k - 1) * out[k - 2] - x_b * out[k - 1] - T * d_pow * pdf)
    return out


def _taylor_coeffs(
    base: SegmentBase, m: ArrayLike, alpha: float, nu: float
) -> list[np.ndarray]:
    """Coefficients of ``alpha S(x) + nu`` in powers of ``x - x_b``."""
    m = np.asarray(m, dtype=np.float64)
    coeffs = [np.asarray(alpha * base.S + nu, dtype=np.float64)]
    term = alpha * np.asarray(base.sigma, dtype=np.float64)
    for k in range(1, SERIES_ORDER + 1):
        coeffs.append(term)
        term = term * m / (k + 1)
    return coeffs


def _series_primitive(
    coeffs: list[np.ndarray], x_b: ArrayLike, y: np.ndarray, T: float
) -> np.ndarray:
    """Antiderivative of ``sum_k coeffs[k] (x - x_b)^k p(x)``."""
    moments = _shifted_moment_primitives(x_b, y, T, len(coeffs) - 1)
    out = coeffs[0] * moments[0]
    for c, n_k in zip(coeffs[1:], moments[1:]):
        out = out + c * n_k
    return out


def _use_series(base: SegmentBase, m: ArrayLike, T: float) -> np.ndarray:
    scale = np.abs(np.asarray(base.x, dtype=np.float64)) + math.sqrt(T)
    return np.abs(np.asarray(m, dtype=np.float64)) * scale < SERIES_SLOPE_TOL


def local_vol(base: SegmentBase, m: ArrayLike, S: ArrayLike) -> np.ndarray:
    """Local vol of the linear-in-level model on the segment."""
    return base.sigma + np.asarray(m, dtype=np.float64) * (
        np.asarray(S, dtype=np.float64) - base.S
    )


def level_of(base: SegmentBase, m: ArrayLike, x: ArrayLike) -> np.ndarray:
    """Underlying level ``S(x)`` on the segment."""
    dx = np.asarray(x, dtype=np.float64) - base.x
    zero, ms = _slope(m)
    with np.errstate(over="ignore", invalid="ignore"):
        curved = base.S + base.sigma / ms * np.expm1(ms * dx)
    return np.where(zero, base.S + base.sigma * dx, curved)


def coord_of(base: SegmentBase, m: ArrayLike, S: ArrayLike) -> np.ndarray:
    """Coordinate ``x(S)`` on the segment, inverse of :func:`level_of`.

    Returns NaN for levels the segment cannot reach, i.e. where
    :func:`local_vol` would be non-positive.
    """
    u = (np.asarray(S, dtype=np.float64) - base.S) / base.sigma
    zero, ms = _slope(m)
    with np.errstate(divide="ignore", invalid="ignore"):
        curved = base.x + np.log1p(ms * u) / ms
    return np.where(zero, base.x + u, curved)


def vol_at_coord(base: SegmentBase, m: ArrayLike, x: ArrayLike) -> np.ndarray:
    """Local vol along the coordinate, ``sigma_b exp(m (x - x_b))``."""
    dx = np.asarray(x, dtype=np.float64) - base.x
    with np.errstate(over="ignore"):
        return base.sigma * np.exp(np.asarray(m, dtype=np.float64) * dx)


def normal_cdf(x: ArrayLike, T: float) -> np.ndarray:
    """Antiderivative of the ``N(0, T)`` density."""
    return ndtr(np.asarray(x, dtype=np.float64) / math.sqrt(T))


def primitive_vol(base: SegmentBase, m: ArrayLike, x: ArrayLike, T: float) -> np.ndarray:
    """Antiderivative of ``sigma(S(x)) p(x)``.

    ``sigma(S(x)) = dS/dx``, so differences of this primitive give the
    sensitivity of ``E[S]`` to a shift of the coordinate.
    """
    sqrt_t = math.sqrt(T)
    y = np.asarray(x, dtype=np.float64) / sqrt_t
    m = np.asarray(m, dtype=np.float64)
    h = m * sqrt_t
    return base.sigma * _exp_shifted_cdf(0.5 * h * h - m * base.x, y - h)


def primitive_f(
    base: SegmentBase,
    m: ArrayLike,
    x: ArrayLike,
    T: float,
    alpha: float = 1.0,
    nu: float = 0.0,
) -> np.ndarray:
    """Antiderivative of ``(alpha S(x) + nu) p(x)`` with ``p`` the N(0, T) pdf.

    Writing ``alpha S(x) + nu = A + B exp(m x)`` and using
    ``int exp(m x) p(x) dx = exp(m^2 T / 2) Phi(x / sqrt(T) - m sqrt(T))``
    gives the curved branch. Small slopes integrate the Taylor expansion of
    ``S`` against the shifted Gaussian moments instead.
    """
    sqrt_t = math.sqrt(T)
    y = np.asarray(x, dtype=np.float64) / sqrt_t
    series = _use_series(base, m, T)
    ms = np.where(series, 1.0, np.asarray(m, dtype=np.float64))

    f_series = _series_primitive(_taylor_coeffs(base, m, alpha, nu), base.x, y, T)

    h = ms * sqrt_t
    a_curved = alpha * (base.S - base.sigma / ms) + nu
    b_curved = alpha * base.sigma / ms
    e1 = _exp_shifted_cdf(0.5 * h * h - ms * base.x, y - h)
    f_curved = a_curved * ndtr(y) + b_curved * e1

    return np.where(series, f_series, f_curved)


def primitive_f_square(
    base: SegmentBase,
    m: ArrayLike,
    x: ArrayLike,
    T: float,
    alpha: float = 1.0,
    nu: float = 0.0,
) -> np.ndarray:
    """Antiderivative of ``(alpha S(x) + nu)^2 p(x)``."""
    sqrt_t = math.sqrt(T)
    y = np.asarray(x, dtype=np.float64) / sqrt_t
    series = _use_series(base, m, T)
    ms = np.where(series, 1.0, np.asarray(m, dtype=np.float64))

    c = _taylor_coeffs(base, m, alpha, nu)
    n = len(c)
    # Cauchy product of the expansion with itself
    squared = [
        sum(c[i] * c[k - i] for i in range(max(0, k - n + 1), min(k, n - 1) + 1))
        for k in range(2 * n - 1)
    ]
    f_series = _series_primitive(squared, base.x, y, T)

    h = ms * sqrt_t
    a_curved = alpha * (base.S - base.sigma / ms) + nu
    b_curved = alpha * base.sigma / ms
    e1 = _exp_shifted_cdf(0.5 * h * h - ms * base.x, y - h)
    e2 = _exp_shifted_cdf(2.0 * h * h - 2.0 * ms * base.x, y - 2.0 * h)
    f_curved = (
        a_curved * a_curved * ndtr(y)
        + 2.0 * a_curved * b_curved * e1
        + b_curved * b_curved * e2
    )

    return np.where(series, f_series, f_curved)
