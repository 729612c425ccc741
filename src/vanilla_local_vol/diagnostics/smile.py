from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from ..pricers.bachelier import call_price, put_price
from ..types import Wing

if TYPE_CHECKING:
    from ..model.calibration import CalibrationResult
    from ..model.vanilla_local_vol import VanillaLocalVolModel


def grid_frame(model: VanillaLocalVolModel) -> pd.DataFrame:
    """Calibrated knots in level order.

    Columns: ``wing`` ("left", "center", "right"), ``x``, ``S``, ``sigma`` and
    ``slope_in`` (slope of the segment ending at the knot; NaN at the center).
    """
    g = model.grid
    n_left = len(g.left)
    n_right = len(g.right)
    wing = ["left"] * n_left + ["center"] + ["right"] * n_right
    slope_in = np.concatenate([g.left.slopes[::-1], [np.nan], g.right.slopes])
    return pd.DataFrame(
        {
            "wing": wing,
            "x": g.x_grid,
            "S": g.S_grid,
            "sigma": g.sigma_grid,
            "slope_in": slope_in,
        }
    )


def calibration_frame(result: CalibrationResult) -> pd.DataFrame:
    """One row per calibration round."""
    rows = [
        {
            "iteration": step.iteration,
            "mu": step.mu,
            "sigma0": step.sigma0,
            "forward": step.forward,
            "straddle": step.straddle,
            "forward_only": step.forward_only,
        }
        for step in result.history
    ]
    return pd.DataFrame(
        rows,
        columns=["iteration", "mu", "sigma0", "forward", "straddle", "forward_only"],
    )


def payoff_frame(
    model: VanillaLocalVolModel, strikes: Sequence[float] | np.ndarray
) -> pd.DataFrame:
    """Model prices across strikes next to the flat Bachelier benchmark.

    The benchmark uses ``sigma_atm`` at every strike, so the difference shows
    the price impact of the smile.
    """
    T = model.time_to_expiry
    F = model.forward
    sig = model.sigma_atm

    rows = []
    for K in np.asarray(strikes, dtype=float).reshape(-1):
        K = float(K)
        call = model.expectation(Wing.RIGHT, K)
        put = model.expectation(Wing.LEFT, K)
        rows.append(
            {
                "strike": K,
                "call": call,
                "put": put,
                "straddle": call + put,
                "call_sq": model.variance(Wing.RIGHT, K),
                "put_sq": model.variance(Wing.LEFT, K),
                "bachelier_call": call_price(forward=F, strike=K, sigma=sig, tau=T),
                "bachelier_put": put_price(forward=F, strike=K, sigma=sig, tau=T),
            }
        )
    return pd.DataFrame(rows)
