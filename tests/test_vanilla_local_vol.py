from __future__ import annotations

import math

import numpy as np
import pytest

from vanilla_local_vol import (
    CalibrationConfig,
    CalibrationStatus,
    CalibrationWarning,
    GridKind,
    VanillaLocalVolModel,
    Wing,
)

SQRT_2_OVER_PI = math.sqrt(2.0 / math.pi)


# -------------------------
# Scenarios
# -------------------------
def test_flat_smile_reduces_to_constant_normal_vol(flat_case, make_model):
    model = make_model(flat_case)

    assert model.converged
    assert model.calibration.iterations <= 3
    assert abs(model.model_forward() - 100.0) < 1e-6
    assert model.mu == pytest.approx(0.0, abs=1e-10)
    assert model.sigma0 == pytest.approx(0.2, rel=1e-10)
    assert model.alpha == pytest.approx(1.0, rel=1e-10)
    assert model.nu == pytest.approx(0.0, abs=1e-8)

    vol = model.local_vol(100.0)
    assert isinstance(vol, float)
    assert math.isfinite(vol) and vol > 0.0
    assert vol == pytest.approx(0.2)


def test_zero_iterations_keeps_seeds_and_logs(flat_case, make_model):
    with pytest.warns(CalibrationWarning):
        model = make_model(flat_case, max_calibration_iters=0, enable_logging=True)

    assert model.calibration.status is CalibrationStatus.MAX_ITERATIONS
    assert model.calibration.iterations == 0
    assert model.mu == 0.0
    assert model.sigma0 == 0.2
    assert any("did not converge" in rec for rec in model.logging())


def test_zero_iterations_keeps_caller_mu_seed(smile_case, make_model):
    with pytest.warns(CalibrationWarning):
        model = make_model(
            smile_case,
            max_calibration_iters=0,
            use_initial_mu=True,
            initial_mu=0.25,
            adjust_atm=False,
        )
    assert model.mu == 0.25
    assert model.sigma0 == 20.0
    assert model.use_initial_mu and model.initial_mu == 0.25
    assert not model.converged


# -------------------------
# Calibrated smile
# -------------------------
@pytest.fixture
def smile_model(smile_case, make_model):
    return make_model(smile_case, max_calibration_iters=20, enable_logging=True)


def test_smile_calibration_converges(smile_model):
    res = smile_model.calibration
    assert res.converged
    assert 1 <= res.iterations < 20
    assert abs(res.forward_error) < 1e-5
    assert len(res.history) == res.iterations
    assert "converged" in smile_model.logging()[-2]


def test_adjuster_matches_forward_and_straddle(smile_model):
    target = 20.0 * SQRT_2_OVER_PI
    assert smile_model.straddle_atm == pytest.approx(target)
    assert smile_model.model_forward() == pytest.approx(100.0, abs=1e-9)

    atm = smile_model.expectation(Wing.RIGHT, 100.0) + smile_model.expectation(
        Wing.LEFT, 100.0
    )
    assert atm == pytest.approx(target, rel=1e-10)
    assert smile_model.model_straddle() == pytest.approx(target, rel=1e-10)
    assert "ATM adjuster" in smile_model.logging()[-1]


def test_disabled_adjuster_leaves_identity(smile_case, make_model):
    model = make_model(smile_case, max_calibration_iters=20, adjust_atm=False)
    assert model.alpha == 1.0 and model.nu == 0.0
    assert not model.adjust_atm_flag
    assert abs(model.model_forward() - 100.0) < 1e-5


def test_grid_invariants(smile_model):
    x = smile_model.underlying_x_grid()
    S = smile_model.underlying_s_grid()
    sigma = smile_model.local_vol_grid()

    assert x.shape == S.shape == sigma.shape
    assert np.all(np.diff(x) > 0.0)
    assert np.all(np.diff(S) > 0.0)
    assert np.all(np.isfinite(sigma)) and np.all(sigma > 0.0)
    assert smile_model.local_vol_slope().shape == (S.size - 1,)
    assert x[0] == pytest.approx(smile_model.lower_bound_x)
    assert x[-1] == pytest.approx(smile_model.upper_bound_x)


def test_round_trip_at_knots(smile_model):
    x = smile_model.underlying_x_grid()
    S = smile_model.underlying_s_grid()
    np.testing.assert_allclose(smile_model.underlying_s(x), S, rtol=1e-12, atol=1e-9)
    np.testing.assert_allclose(smile_model.underlying_x(S), x, rtol=1e-12, atol=1e-9)
    np.testing.assert_allclose(smile_model.local_vol(S), smile_model.local_vol_grid())


def test_local_vol_is_flat_beyond_outer_knots(smile_model):
    sigma = smile_model.local_vol_grid()
    S = smile_model.underlying_s_grid()
    assert smile_model.local_vol(S[-1] + 1e4) == pytest.approx(sigma[-1])
    assert smile_model.local_vol(S[0] - 1e4) == pytest.approx(sigma[0])


def test_local_vol_accepts_arrays(smile_model):
    S = np.linspace(60.0, 140.0, 9).reshape(3, 3)
    out = smile_model.local_vol(S)
    assert isinstance(out, np.ndarray)
    assert out.shape == (3, 3)
    assert np.all(out > 0.0)


def test_skew_shape(smile_model):
    assert smile_model.local_vol(70.0) > smile_model.local_vol(100.0)
    assert smile_model.local_vol(130.0) > smile_model.local_vol(100.0)


def test_construction_is_deterministic(smile_case, make_model):
    a = make_model(smile_case, max_calibration_iters=20)
    b = make_model(smile_case, max_calibration_iters=20)
    assert (a.mu, a.sigma0, a.alpha, a.nu) == (b.mu, b.sigma0, b.alpha, b.nu)
    np.testing.assert_array_equal(a.underlying_x_grid(), b.underlying_x_grid())
    np.testing.assert_array_equal(a.underlying_s_grid(), b.underlying_s_grid())
    np.testing.assert_array_equal(a.local_vol_grid(), b.local_vol_grid())


def test_forward_only_warmup_holds_sigma0(smile_case, make_model):
    model = make_model(
        smile_case, max_calibration_iters=20, only_forward_calibration_iters=3
    )
    hist = model.calibration.history
    assert [s.forward_only for s in hist[:3]] == [True, True, True]
    assert {s.sigma0 for s in hist[:4]} == {20.0}
    assert not hist[3].forward_only
    assert model.converged
    assert model.calibration.iterations > 3


def test_logging_disabled_by_default(smile_case, make_model):
    model = make_model(smile_case, max_calibration_iters=20)
    assert model.logging() == ()
    assert not model.enable_logging


def test_inspectors(smile_case, make_model):
    model = make_model(smile_case, max_calibration_iters=20)
    assert model.time_to_expiry == 1.0
    assert model.forward == 100.0
    assert model.sigma_atm == 20.0
    assert model.grid_kind is GridKind.LEVELS
    np.testing.assert_array_equal(model.right_points, smile_case["Sp"])
    np.testing.assert_array_equal(model.left_slopes, smile_case["Mm"])
    assert model.max_calibration_iters == 20
    assert model.only_forward_calibration_iters == 0
    assert model.extrapolation_stdevs == 10.0
    assert model.upper_bound_x - model.lower_bound_x == pytest.approx(20.0)


def test_config_object_and_overrides(smile_case):
    cfg = CalibrationConfig(max_calibration_iters=20, extrapolation_stdevs=6.0)
    model = VanillaLocalVolModel.from_levels(**smile_case, config=cfg, enable_logging=True)
    assert model.config.extrapolation_stdevs == 6.0
    assert model.config.enable_logging
    assert model.upper_bound_x - model.mu == pytest.approx(6.0)


def test_invalid_control_raises_before_calibration(smile_case):
    with pytest.raises(ValueError, match="sigma0_tol"):
        VanillaLocalVolModel.from_levels(**smile_case, sigma0_tol=0.0)
    with pytest.raises(TypeError):
        VanillaLocalVolModel.from_levels(**smile_case, no_such_control=1)


def test_model_is_immutable(smile_model):
    with pytest.raises(AttributeError):
        smile_model.grid = None  # type: ignore[misc]


# -------------------------
# Coordinate construction
# -------------------------
def test_flat_coordinate_model_matches_level_model(flat_case, make_model):
    by_levels = make_model(flat_case)
    by_coords = VanillaLocalVolModel.from_coordinates(
        T=1.0, S0=100.0, sigma_atm=0.2, Xp=[1.0], Xm=[-1.0], Mp=[0.0], Mm=[0.0]
    )
    assert by_coords.grid_kind is GridKind.COORDINATES
    assert by_coords.sigma0 == pytest.approx(by_levels.sigma0)
    assert by_coords.mu == pytest.approx(by_levels.mu, abs=1e-10)
    np.testing.assert_allclose(
        by_coords.underlying_s_grid(), by_levels.underlying_s_grid(), rtol=1e-10
    )


def test_coordinate_model_keeps_knot_offsets():
    model = VanillaLocalVolModel.from_coordinates(
        T=0.5,
        S0=100.0,
        sigma_atm=15.0,
        Xp=[0.25, 0.5, 1.0],
        Xm=[-0.25, -0.5, -1.0],
        Mp=[0.02, 0.04, 0.04],
        Mm=[-0.03, -0.05, -0.05],
        sigma0=14.0,
        max_calibration_iters=20,
    )
    assert model.converged
    g = model.grid
    np.testing.assert_allclose(g.right.x[:-1] - model.mu, [0.25, 0.5])
    np.testing.assert_allclose(g.left.x[:-1] - model.mu, [-0.25, -0.5])
    assert model.model_forward() == pytest.approx(100.0, abs=1e-9)
