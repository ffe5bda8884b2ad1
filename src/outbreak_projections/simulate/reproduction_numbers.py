# src/outbreak_projections/simulate/reproduction_numbers.py
"""
Reproduction numbers for the projections.

R is supplied either as one pool of plausible values or as one pool per
time period. Periods are delimited by `time_change`, given in days into the
simulation (day 1 is the day after the last observed date).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.random import Generator

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def _as_pool(values) -> np.ndarray:
    """Validate one pool of R values and return it as a float array."""
    try:
        pool = np.atleast_1d(np.asarray(values, dtype=float))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"R values must be numeric: {exc}") from exc
    if pool.ndim != 1:
        raise ConfigurationError("A pool of R values must be 1D")
    if pool.size == 0:
        raise ConfigurationError("A pool of R values cannot be empty")
    if np.any(~np.isfinite(pool)):
        raise ConfigurationError("R values must be finite")
    if np.any(pool < 0):
        raise ConfigurationError(f"R values must be >= 0 (found {pool.min()})")
    return pool


@dataclass(frozen=True, eq=False)
class SinglePeriod:
    """One pool of R values used for the whole projection."""
    pool: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "pool", _as_pool(self.pool))

    @property
    def pools(self) -> Tuple[np.ndarray, ...]:
        return (self.pool,)


@dataclass(frozen=True, eq=False)
class MultiPeriod:
    """One pool of R values per time period, in time order."""
    pools: Tuple[np.ndarray, ...]

    def __post_init__(self):
        if isinstance(self.pools, np.ndarray) and self.pools.ndim < 2:
            raise ConfigurationError("MultiPeriod needs a sequence of pools")
        pools = tuple(_as_pool(p) for p in self.pools)
        if not pools:
            raise ConfigurationError("MultiPeriod needs at least one pool")
        object.__setattr__(self, "pools", pools)


RSpec = Union[SinglePeriod, MultiPeriod]


def validate_time_change(time_change) -> np.ndarray:
    """Return time changes as a sorted int array; None or empty means no change."""
    if time_change is None:
        return np.zeros(0, dtype=np.int64)

    tc = np.atleast_1d(np.asarray(time_change))
    if tc.size == 0:
        return np.zeros(0, dtype=np.int64)
    if tc.dtype == bool or not np.issubdtype(tc.dtype, np.number):
        raise ConfigurationError(
            f"`time_change` must be numeric, but is a `{type(time_change).__name__}`"
        )
    if tc.ndim != 1:
        raise ConfigurationError("`time_change` must be 1D")
    if np.any(~np.isfinite(tc)) or np.any(tc != np.round(tc)):
        raise ConfigurationError("`time_change` must contain whole numbers of days")
    if np.any(tc <= 0):
        raise ConfigurationError("`time_change` days must be > 0")
    if np.any(np.diff(tc) <= 0):
        raise ConfigurationError("`time_change` must be strictly increasing")
    return tc.astype(np.int64)


def _is_nested(R) -> bool:
    if isinstance(R, np.ndarray):
        return R.dtype == object or R.ndim > 1
    if isinstance(R, (list, tuple)):
        return any(np.ndim(r) > 0 or isinstance(r, (list, tuple)) for r in R)
    return False


def resolve_r_spec(R, time_change=None) -> RSpec:
    """Turn user input for R into a SinglePeriod or MultiPeriod.

    Args:
        R: SinglePeriod, MultiPeriod, a number, a flat sequence of values
            or a sequence of pools
        time_change: None or sequence of days at which R switches pool
    Returns:
        SinglePeriod or MultiPeriod whose number of pools matches the periods
    Raises:
        ConfigurationError
    """
    tc = validate_time_change(time_change)
    n_periods = tc.size + 1

    if isinstance(R, (SinglePeriod, MultiPeriod)):
        spec = R
    elif _is_nested(R):
        spec = MultiPeriod(pools=tuple(R))
    elif n_periods > 1:
        # A flat sequence with time changes holds one fixed R per period
        values = _as_pool(R)
        if values.size != n_periods:
            raise ConfigurationError(
                f"`R` must be a `list` of size {n_periods} to match "
                f"{n_periods - 1} time changes; found {values.size}"
            )
        spec = MultiPeriod(pools=tuple(values.reshape(-1, 1)))
    else:
        spec = SinglePeriod(pool=R)

    n_pools = len(spec.pools)
    if n_pools != n_periods:
        raise ConfigurationError(
            f"`R` must be a `list` of size {n_periods} to match "
            f"{n_periods - 1} time changes; found {n_pools}"
        )
    return spec


def resolve_periods(time_change, n_days: int, offset: int) -> np.ndarray:
    """Index of the active R pool for each simulated day

    Args:
        time_change: days into the simulation at which the pool changes
        n_days (int): number of simulated days
        offset (int): absolute index of the first simulated day (n_observed + 1)
    Returns:
        periods (nparray(n_days,)): 0-based period index per simulated day
    """
    tc = validate_time_change(time_change)
    # Relative days -> absolute day indices
    boundaries = tc + offset - 1

    periods = np.zeros(n_days, dtype=np.int64)
    period = 0
    for d in range(n_days):
        day = offset + d
        while period < boundaries.size and day >= boundaries[period]:
            period += 1
        periods[d] = period
    return periods


def sample_r(pool: np.ndarray, n: int, rng: Generator) -> np.ndarray:
    """Draw n values uniformly, with replacement, from a pool of R values."""
    pool = np.asarray(pool, dtype=float)
    return rng.choice(pool, size=n, replace=True)


class RSampler:
    """Hands out the R values used on each simulated day.

    With `fix_within=True` each trajectory keeps one draw per period, made
    the first time the period is entered. Otherwise every day gets a new
    draw from the active pool.
    """

    def __init__(self, spec: RSpec, n_sim: int, rng: Generator, fix_within: bool = False):
        self.spec = spec
        self.n_sim = int(n_sim)
        self.rng = rng
        self.fix_within = bool(fix_within)
        self._fixed: List[Optional[np.ndarray]] = [None] * len(spec.pools)

    def for_period(self, period: int) -> np.ndarray:
        pool = self.spec.pools[period]
        if not self.fix_within:
            return sample_r(pool, self.n_sim, self.rng)
        if self._fixed[period] is None:
            self._fixed[period] = sample_r(pool, self.n_sim, self.rng)
            logger.debug("Drew fixed R values for period %d", period)
        return self._fixed[period]

    def fixed_draws(self) -> List[Optional[np.ndarray]]:
        """Fixed draws per period (None for periods never entered)."""
        return list(self._fixed)


def pools_summary(spec: RSpec) -> Sequence[Tuple[int, float]]:
    """(size, mean) for each pool, used in log messages."""
    return [(int(p.size), float(p.mean())) for p in spec.pools]
