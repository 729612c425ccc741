"""Pytest helpers for the vanilla_local_vol package."""

from __future__ import annotations

import pytest

from vanilla_local_vol import VanillaLocalVolModel


@pytest.fixture
def flat_case() -> dict:
    """Zero-slope smile: the model reduces to a constant normal vol."""
    return {
        "T": 1.0,
        "S0": 100.0,
        "sigma_atm": 0.2,
        "Sp": [110.0],
        "Sm": [90.0],
        "Mp": [0.0],
        "Mm": [0.0],
    }


@pytest.fixture
def smile_case() -> dict:
    """A mild skewed smile with normal vol of 20 at the forward."""
    return {
        "T": 1.0,
        "S0": 100.0,
        "sigma_atm": 20.0,
        "Sp": [110.0, 125.0, 150.0],
        "Sm": [90.0, 75.0, 50.0],
        "Mp": [0.02, 0.05, 0.05],
        "Mm": [-0.03, -0.06, -0.06],
    }


@pytest.fixture
def make_model():
    """Factory fixture forwarding keyword controls to ``from_levels``."""

    def _make(case: dict, **controls) -> VanillaLocalVolModel:
        return VanillaLocalVolModel.from_levels(**case, **controls)

    return _make
