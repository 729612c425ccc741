from __future__ import annotations

import logging
import warnings

import numpy as np
import pytest

from vanilla_local_vol import (
    CalibrationConfig,
    CalibrationStatus,
    CalibrationWarning,
    GridKind,
    Wing,
)
from vanilla_local_vol.logging import ListTrace
from vanilla_local_vol.model import evaluator
from vanilla_local_vol.model.calibration import adjust_atm, calibrate_atm, straddle_target
from vanilla_local_vol.model.grid_builder import build_grid, validate_parameters


@pytest.fixture
def params(smile_case):
    return validate_parameters(
        T=smile_case["T"],
        S0=smile_case["S0"],
        sigma_atm=smile_case["sigma_atm"],
        right_points=smile_case["Sp"],
        left_points=smile_case["Sm"],
        right_slopes=smile_case["Mp"],
        left_slopes=smile_case["Mm"],
        kind=GridKind.LEVELS,
    )


def test_straddle_target_is_normal_vol_straddle(params):
    assert straddle_target(params) == pytest.approx(20.0 * np.sqrt(2.0 / np.pi))


def test_returned_grid_matches_result(params):
    grid, res = calibrate_atm(params, CalibrationConfig(max_calibration_iters=20))
    assert res.status is CalibrationStatus.CONVERGED
    assert grid.mu == res.mu
    assert grid.sigma0 == res.sigma0
    assert evaluator.forward(grid) == res.forward
    assert abs(res.forward_error) < 1e-5
    assert abs(res.straddle_error) < 1e-4
    assert "status=converged" in res.summary


def test_history_records_state_before_each_update(params):
    _, res = calibrate_atm(params, CalibrationConfig(max_calibration_iters=20))
    first = res.history[0]
    assert first.iteration == 1
    assert first.mu == 0.0
    assert first.sigma0 == params.sigma0
    assert [s.iteration for s in res.history] == list(range(1, res.iterations + 1))
    # later rounds price closer to the forward
    assert abs(res.history[-1].forward - 100.0) < abs(first.forward - 100.0)


def test_cap_warns_and_logs(params, caplog):
    trace = ListTrace()
    cfg = CalibrationConfig(max_calibration_iters=1)
    with caplog.at_level(logging.WARNING, logger="vanilla_local_vol"):
        with pytest.warns(CalibrationWarning, match="did not converge within 1"):
            _, res = calibrate_atm(params, cfg, trace)

    assert res.status is CalibrationStatus.MAX_ITERATIONS
    assert not res.converged
    assert res.iterations == 1
    assert any("did not converge" in r.getMessage() for r in caplog.records)
    assert trace.records[0].startswith("iter 1:")
    assert "did not converge" in trace.records[-1]


def test_warmup_rounds_are_flagged_in_trace(params):
    trace = ListTrace()
    cfg = CalibrationConfig(max_calibration_iters=20, only_forward_calibration_iters=2)
    _, res = calibrate_atm(params, cfg, trace)

    iters = [r for r in trace.records if r.startswith("iter ")]
    assert iters[0].endswith("(forward only)")
    assert iters[1].endswith("(forward only)")
    assert not iters[2].endswith("(forward only)")
    assert len(iters) == res.iterations


def test_warmup_longer_than_cap_never_converges(params):
    cfg = CalibrationConfig(max_calibration_iters=3, only_forward_calibration_iters=5)
    with pytest.warns(CalibrationWarning):
        _, res = calibrate_atm(params, cfg)
    assert all(s.forward_only for s in res.history)
    assert res.sigma0 == params.sigma0


def test_adjuster_solves_forward_and_straddle(params):
    with pytest.warns(CalibrationWarning):
        grid, _ = calibrate_atm(params, CalibrationConfig(max_calibration_iters=0))
    target = straddle_target(params)
    adj = adjust_atm(grid, target)

    assert adj.forward == pytest.approx(params.S0, abs=1e-9)
    assert adj.straddle == pytest.approx(target, rel=1e-10)
    # the vol grid itself is not touched
    assert evaluator.forward(grid) != pytest.approx(params.S0, abs=1e-9)


def test_adjuster_is_identity_on_calibrated_flat_grid(flat_case):
    p = validate_parameters(
        T=1.0,
        S0=100.0,
        sigma_atm=0.2,
        right_points=flat_case["Sp"],
        left_points=flat_case["Sm"],
        right_slopes=flat_case["Mp"],
        left_slopes=flat_case["Mm"],
        kind=GridKind.LEVELS,
    )
    grid, _ = calibrate_atm(p, CalibrationConfig())
    adj = adjust_atm(grid, straddle_target(p))
    assert adj.alpha == pytest.approx(1.0, rel=1e-10)
    assert adj.nu == pytest.approx(0.0, abs=1e-8)


STEEP_CASE = {
    "T": 2.0,
    "S0": 100.0,
    "sigma_atm": 25.0,
    "Sp": [110.0, 125.0, 150.0],
    "Sm": [90.0, 75.0, 50.0],
    "Mp": [0.3, 0.4, 0.4],
    "Mm": [-0.3, -0.5, -0.5],
}

NEAR_FLAT_CASE = {
    "T": 1.0,
    "S0": 100.0,
    "sigma_atm": 20.0,
    "Sp": [110.0, 150.0],
    "Sm": [90.0, 50.0],
    "Mp": [2e-9, 2e-9],
    "Mm": [-2e-9, -2e-9],
}


def _params(case: dict):
    return validate_parameters(
        T=case["T"],
        S0=case["S0"],
        sigma_atm=case["sigma_atm"],
        right_points=case["Sp"],
        left_points=case["Sm"],
        right_slopes=case["Mp"],
        left_slopes=case["Mm"],
        kind=GridKind.LEVELS,
    )


def test_steep_smile_converges_with_default_controls():
    cfg = CalibrationConfig()
    grid, res = calibrate_atm(_params(STEEP_CASE), cfg)
    assert res.status is CalibrationStatus.CONVERGED
    assert res.iterations <= cfg.max_calibration_iters
    assert abs(res.forward_error) < cfg.S0_tol
    assert abs(res.straddle_error) < 1e-4
    assert evaluator.forward(grid) == res.forward


@pytest.mark.parametrize("case", [STEEP_CASE, NEAR_FLAT_CASE], ids=["steep", "near_flat"])
@pytest.mark.parametrize("warmup", [0, 2])
def test_converged_result_meets_forward_tolerance(case, warmup):
    cfg = CalibrationConfig(max_calibration_iters=20, only_forward_calibration_iters=warmup)
    grid, res = calibrate_atm(_params(case), cfg)
    assert res.converged
    assert abs(res.forward_error) < cfg.S0_tol
    assert abs(evaluator.forward(grid) - case["S0"]) < cfg.S0_tol
    assert res.history[-1].forward == res.forward


def test_smile_case_converges_with_default_controls(params):
    with warnings.catch_warnings():
        warnings.simplefilter("error", CalibrationWarning)
        _, res = calibrate_atm(params, CalibrationConfig())
    assert res.converged
    assert abs(res.forward_error) < 1e-6


@pytest.mark.parametrize("case", [STEEP_CASE, NEAR_FLAT_CASE], ids=["steep", "near_flat"])
def test_mu_sensitivities_match_finite_differences(case):
    p = _params(case)
    mu, sigma0, h = 0.15, p.sigma0, 1e-5

    def priced(shift: float) -> tuple[float, float]:
        g = build_grid(p, mu=mu + shift, sigma0=sigma0, extrapolation_stdevs=10.0)
        return evaluator.forward(g), evaluator.straddle(g, p.S0)

    grid = build_grid(p, mu=mu, sigma0=sigma0, extrapolation_stdevs=10.0)
    (f_up, s_up), (f_dn, s_dn) = priced(h), priced(-h)

    dF = (f_up - f_dn) / (2.0 * h)
    dD = (s_up - s_dn) / (2.0 * h)
    assert -evaluator.expected_local_vol(grid) == pytest.approx(dF, rel=1e-6)
    left = evaluator.expected_local_vol(grid, Wing.LEFT)
    right = evaluator.expected_local_vol(grid, Wing.RIGHT)
    assert left - right == pytest.approx(dD, rel=1e-5, abs=1e-6)
    assert left + right == pytest.approx(evaluator.expected_local_vol(grid), rel=1e-12)
