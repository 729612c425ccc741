"""Matplotlib plumbing shared by the smile plots."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from matplotlib.axes import Axes
    from matplotlib.figure import Figure


def get_plt():
    """Import matplotlib.pyplot lazily; the package imports without it."""
    try:
        import matplotlib.pyplot as plt
    except ModuleNotFoundError as e:
        raise ModuleNotFoundError(
            "Plotting requires matplotlib. Install it with: pip install matplotlib"
        ) from e
    return plt


def figure_and_axes(
    ax: Axes | None, figsize: tuple[float, float]
) -> tuple[Figure, Axes]:
    """Reuse ``ax`` and its figure, or open a new single-axes figure."""
    if ax is not None:
        return ax.figure, ax
    plt = get_plt()
    fig, ax = plt.subplots(figsize=figsize, constrained_layout=True)
    return fig, ax


def finish_ax(ax: Axes, *, xlabel: str, ylabel: str, title: str) -> None:
    """Label, add a legend and apply the light grid style."""
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.legend(frameon=True)
    ax.grid(axis="both", alpha=0.25)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
