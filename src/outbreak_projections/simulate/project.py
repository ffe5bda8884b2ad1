# src/outbreak_projections/simulate/project.py
"""
Project future daily incidence with a branching process (renewal equation).

The force of infection on a given day is the sum of the individual forces
of infection of all previous cases, observed or simulated:

    lambda_t = sum_s I_{t-s} w_s

where w is the serial interval mass function. New cases on day t are drawn
from a Poisson (or Negative Binomial) distribution with mean R * lambda_t.
"""

import logging
import numbers
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from numpy.random import Generator, default_rng

from ..errors import ConfigurationError
from ..incidence import Incidence, day_steps
from ..projection import Projection
from .calculate_serial_weights import build_serial_kernel
from .reproduction_numbers import (
    RSampler,
    pools_summary,
    resolve_periods,
    resolve_r_spec,
    validate_time_change,
)

logger = logging.getLogger(__name__)

MODELS = ("poisson", "negbin")


def check_incidence(x) -> None:
    """Raise ConfigurationError unless x is daily, single group incidence."""
    if not isinstance(x, Incidence):
        raise ConfigurationError("x is not an Incidence object")
    if x.interval != 1:
        raise ConfigurationError(
            f"daily incidence needed, but interval is {x.interval} days"
        )
    steps = day_steps(x.dates)
    if steps.size and np.any(steps != 1):
        raise ConfigurationError("daily incidence needed, but dates are not contiguous days")
    if x.n_groups > 1:
        raise ConfigurationError("cannot use multiple groups in Incidence object")


def _positive_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be >= 1")
    return int(value)


def draw_negbin(mu: np.ndarray, lam: np.ndarray, size: float, rng: Generator) -> np.ndarray:
    """Negative Binomial draws with mean mu and size lam * size.

    Where lam is 0 the size would be 0, which is not a valid distribution;
    it is set to 1 instead, and since mu is then 0 the draw is always 0.
    """
    size_adj = lam * size
    size_adj[lam == 0] = 1.0
    # numpy uses (n, p) with mean n (1 - p) / p
    p = size_adj / (size_adj + mu)
    return rng.negative_binomial(size_adj, p)


def project(
    x: Incidence,
    R,
    si,
    n_sim: int = 100,
    n_days: int = 7,
    R_fix_within: bool = False,
    model: str = "poisson",
    size: float = 0.03,
    time_change: Optional[Sequence[int]] = None,
    rng: Optional[Generator] = None,
    seed: Optional[int] = None,
) -> Projection:
    """Simulate future incidence from past incidence, R and a serial interval

    Args:
        x (Incidence): daily incidence, a single group
        R: plausible reproduction numbers; a number, a pool of values, a
            SinglePeriod / MultiPeriod, or with `time_change` one value (or
            one pool) per time period
        si: serial interval, a ContinuousKernel / DiscreteKernel, a callable
            of the lag, or a mass vector for lags 0, 1, 2, ...
        n_sim (int): number of trajectories
        n_days (int): number of days to project
        R_fix_within (bool): keep one R per trajectory within each period
            instead of drawing R for every trajectory and every day
        model (str): "poisson" or "negbin"
        size (float): Negative Binomial size parameter, ignored for "poisson"
        time_change: days into the simulation (day 1 is the day after the last
            observed date) at which R switches to the next pool
        rng (Generator): random generator; if None one is made from `seed`
        seed (int): seed used when `rng` is None
    Returns:
        Projection with n_days rows and n_sim columns
    Raises:
        ConfigurationError
    """
    # All checks happen before any random number is drawn
    if model not in MODELS:
        raise ConfigurationError(f"model must be one of {MODELS}, got {model!r}")
    check_incidence(x)
    n_sim = _positive_int(n_sim, "n_sim")
    n_days = _positive_int(n_days, "n_days")
    if model == "negbin" and not (
        isinstance(size, numbers.Real) and not isinstance(size, bool)
        and np.isfinite(size) and size > 0
    ):
        raise ConfigurationError("size must be > 0 for the negbin model")

    tc = validate_time_change(time_change)
    spec = resolve_r_spec(R, tc)

    n_dates_x = x.n_dates
    t_max = n_days + n_dates_x - 1
    ws = build_serial_kernel(si, t_max)

    t_start = n_dates_x + 1
    periods = resolve_periods(tc, n_days, offset=t_start)

    if rng is None:
        rng = default_rng(seed)

    logger.debug(
        "Projecting %d days x %d sims from %d observed days (model=%s, R pools=%s)",
        n_days, n_sim, n_dates_x, model, pools_summary(spec),
    )

    # Observed days are copied to every trajectory, projected days start at 0
    out = np.zeros((t_max + 1, n_sim), dtype=np.int64)
    out[:n_dates_x, :] = x.counts[:, [0]]
    r_values = np.zeros((n_days, n_sim), dtype=float)

    sampler = RSampler(spec, n_sim, rng, fix_within=R_fix_within)

    # TODO: under-reporting would scale lambda here and thin the true
    # incidence with a Binomial draw afterwards
    for d in range(n_days):
        i = t_start + d  # 1-based absolute day
        period = int(periods[d])
        if d > 0 and period != periods[d - 1]:
            logger.debug("Day %d: switching to R period %d", d + 1, period)

        current_R = sampler.for_period(period)

        # lags i-1..0 against days 1..i; day i itself is still 0
        lam = ws[-i:] @ out[:i, :]
        mu = current_R * lam

        if model == "poisson":
            out[i - 1, :] = rng.poisson(mu)
        else:
            out[i - 1, :] = draw_negbin(mu, lam, size, rng)
        r_values[d, :] = current_R

    projected = out[n_dates_x:, :]

    if x.is_datetime:
        dates = pd.date_range(x.dates[-1] + pd.Timedelta(days=1), periods=n_days, freq="D")
    else:
        dates = x.dates[-1] + np.arange(1, n_days + 1)

    logger.info(
        "Projected %d days x %d simulations (total cases per sim: mean %.1f)",
        n_days, n_sim, float(projected.sum(axis=0).mean()),
    )
    return Projection(projected, dates, cumulative=False, r_values=r_values)
