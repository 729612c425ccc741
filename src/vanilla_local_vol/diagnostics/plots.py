from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ._mpl import figure_and_axes, finish_ax

if TYPE_CHECKING:
    from matplotlib.axes import Axes
    from matplotlib.figure import Figure

    from ..model.vanilla_local_vol import VanillaLocalVolModel


def _coord_window(model: VanillaLocalVolModel, n_stdevs: float) -> tuple[float, float]:
    half = n_stdevs * np.sqrt(model.time_to_expiry)
    return model.mu - half, model.mu + half


def plot_local_vol(
    model: VanillaLocalVolModel,
    *,
    n_stdevs: float = 3.0,
    n_points: int = 401,
    ax: Axes | None = None,
    figsize: tuple[float, float] = (8, 4.5),
) -> tuple[Figure, Axes]:
    """Plot ``sigma(S)`` over ``mu +/- n_stdevs sqrt(T)`` with the knots marked."""
    fig, ax = figure_and_axes(ax, figsize)

    x_lo, x_hi = _coord_window(model, n_stdevs)
    lo = float(model.underlying_s(x_lo))
    hi = float(model.underlying_s(x_hi))
    S = np.linspace(lo, hi, n_points)
    ax.plot(S, model.local_vol(S), label="local vol")

    knots_S = model.underlying_s_grid()
    knots_sigma = model.local_vol_grid()
    inside = (knots_S >= lo) & (knots_S <= hi)
    ax.plot(knots_S[inside], knots_sigma[inside], "o", label="knots")
    ax.axvline(model.forward, linestyle="--", linewidth=1.0, label="S0")

    finish_ax(ax, xlabel="S", ylabel="sigma(S)", title=f"Local vol, T={model.time_to_expiry:g}")
    return fig, ax


def plot_level_map(
    model: VanillaLocalVolModel,
    *,
    n_stdevs: float = 3.0,
    n_points: int = 401,
    ax: Axes | None = None,
    figsize: tuple[float, float] = (8, 4.5),
) -> tuple[Figure, Axes]:
    """Plot ``S(x)`` against the flat-vol line ``S0 + sigma0 (x - mu)``."""
    fig, ax = figure_and_axes(ax, figsize)

    x = np.linspace(*_coord_window(model, n_stdevs), n_points)
    ax.plot(x, model.underlying_s(x), label="S(x)")
    ax.plot(
        x,
        model.forward + model.sigma0 * (x - model.mu),
        linestyle="--",
        linewidth=1.0,
        label="flat vol",
    )

    finish_ax(ax, xlabel="x", ylabel="S", title="Level map")
    return fig, ax
