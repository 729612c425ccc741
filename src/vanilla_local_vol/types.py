from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .typing import FloatArray


class Wing(str, Enum):
    """Side of the smile relative to the forward.

    Attributes
    ----------
    RIGHT : str
        Levels above the forward ("right"). Expectations on this wing price
        call-style payoffs.
    LEFT : str
        Levels below the forward ("left"). Expectations on this wing price
        put-style payoffs.
    """

    RIGHT = "right"
    LEFT = "left"

    @property
    def sign(self) -> float:
        """+1.0 for the right wing, -1.0 for the left wing."""
        return 1.0 if self is Wing.RIGHT else -1.0


class GridKind(str, Enum):
    """Which grid the caller supplied; the other one is derived."""

    LEVELS = "levels"
    COORDINATES = "coordinates"


@dataclass(frozen=True, slots=True)
class WingInput:
    """Knots and per-segment slopes of one wing, as supplied by the caller.

    Parameters
    ----------
    points : FloatArray
        Underlying levels (moving away from ``S0``) or normalized coordinates
        (moving away from 0), depending on :class:`GridKind`.
    slopes : FloatArray
        Local-vol slope ``d sigma / dS`` on the segment that ends at the
        matching knot. ``slopes[0]`` applies between the center and
        ``points[0]``.
    """

    points: FloatArray
    slopes: FloatArray

    def __len__(self) -> int:
        return int(self.points.size)


@dataclass(frozen=True, slots=True)
class ModelParameters:
    """Validated, immutable model inputs.

    Parameters
    ----------
    T : float
        Time to expiry in years.
    S0 : float
        Forward level of the underlying.
    sigma_atm : float
        ATM normal (Bachelier) volatility defining the straddle target.
    right, left : WingInput
        Wing knots above and below the forward.
    kind : GridKind
        Whether ``right``/``left`` hold levels or coordinates.
    sigma0 : float
        Seed for the local vol at ``S0``.

    Notes
    -----
    Instances are produced by
    :func:`vanilla_local_vol.model.grid_builder.validate_parameters`; the
    constructor itself does not validate.
    """

    T: float
    S0: float
    sigma_atm: float
    right: WingInput
    left: WingInput
    kind: GridKind
    sigma0: float

    def wing(self, wing: Wing) -> WingInput:
        return self.right if wing is Wing.RIGHT else self.left
