from __future__ import annotations

import math

from scipy.stats import norm


def _validate_scalar_inputs(*, sigma: float, tau: float) -> None:
    if sigma <= 0.0:
        raise ValueError("sigma must be positive")
    if tau <= 0.0:
        raise ValueError("tau must be positive")


def d_from_forward(
    *, forward: float, strike: float, sigma: float, tau: float
) -> float:
    _validate_scalar_inputs(sigma=sigma, tau=tau)
    return float((forward - strike) / (sigma * math.sqrt(tau)))


def call_price(*, forward: float, strike: float, sigma: float, tau: float) -> float:
    """
    Undiscounted Bachelier (normal-model) call on the forward.
    """
    d = d_from_forward(forward=forward, strike=strike, sigma=sigma, tau=tau)
    vol_sqrt_t = sigma * math.sqrt(tau)
    return float((forward - strike) * norm.cdf(d) + vol_sqrt_t * norm.pdf(d))


def put_price(*, forward: float, strike: float, sigma: float, tau: float) -> float:
    """
    Undiscounted Bachelier (normal-model) put on the forward.
    """
    d = d_from_forward(forward=forward, strike=strike, sigma=sigma, tau=tau)
    vol_sqrt_t = sigma * math.sqrt(tau)
    return float((strike - forward) * norm.cdf(-d) + vol_sqrt_t * norm.pdf(d))


def straddle_atm(*, sigma: float, tau: float) -> float:
    # E|F_T - F| = sigma sqrt(T) sqrt(2/pi)
    _validate_scalar_inputs(sigma=sigma, tau=tau)
    return sigma * math.sqrt(tau) * math.sqrt(2.0 / math.pi)
