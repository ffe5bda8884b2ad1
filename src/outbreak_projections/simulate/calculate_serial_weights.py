# src/outbreak_projections/simulate/calculate_serial_weights.py
# Turn a serial interval into the discrete daily weights w_k used by the
# renewal equation, reversed so that they line up with past incidence.
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Sequence, Union

import numpy as np
from scipy.stats import gamma

from ..errors import ConfigurationError


@dataclass(frozen=True)
class ContinuousKernel:
    """Serial interval given as a mass function of the (integer) lag.

    Values returned by `mass` are trusted as they are; they are not
    renormalised.
    """
    mass: Callable[[np.ndarray], np.ndarray]
    interval: int = 1

    def weights(self, t_max: int) -> np.ndarray:
        lags = np.arange(t_max + 1)
        try:
            w = np.asarray(self.mass(lags), dtype=float)
        except (TypeError, ValueError):
            # Mass functions written for one lag at a time
            w = None
        if w is None or w.shape != lags.shape:
            w = self._weights_by_lag(lags)
        return w

    def _weights_by_lag(self, lags: np.ndarray) -> np.ndarray:
        try:
            w = np.array([self.mass(int(k)) for k in lags], dtype=float)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Could not evaluate serial interval mass: {exc}") from exc
        if w.shape != lags.shape:
            raise ConfigurationError(
                f"Serial interval mass returned shape {w.shape}, expected {lags.shape}"
            )
        return w


@dataclass(frozen=True, eq=False)
class DiscreteKernel:
    """Serial interval given as masses for lags 0, 1, 2, ...

    The masses are renormalised to sum to one.
    """
    mass: Sequence[float]
    interval: int = 1

    def weights(self, t_max: int) -> np.ndarray:
        w = np.asarray(self.mass, dtype=float)
        if w.ndim != 1 or w.size == 0:
            raise ConfigurationError("Serial interval mass must be a non-empty 1D sequence")
        total = float(w.sum())
        if not np.isfinite(total) or total <= 0:
            raise ConfigurationError("Serial interval mass must have a positive, finite sum")
        w = w / total
        # Pad (or cut) to lags 0..t_max; later lags are never reached
        out = np.zeros(t_max + 1, dtype=float)
        n = min(w.size, t_max + 1)
        out[:n] = w[:n]
        return out


SerialInterval = Union[ContinuousKernel, DiscreteKernel, Callable, Sequence[float]]


def as_serial_kernel(si: SerialInterval):
    """Wrap a plain callable or sequence into the matching kernel type."""
    if isinstance(si, (ContinuousKernel, DiscreteKernel)):
        return si
    if callable(si):
        return ContinuousKernel(mass=si)
    if isinstance(si, (str, bytes)):
        raise ConfigurationError("Serial interval must be a callable or a numeric sequence")
    try:
        mass = np.asarray(si, dtype=float)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            "Serial interval must be a callable or a numeric sequence"
        ) from exc
    return DiscreteKernel(mass=mass)


def build_serial_kernel(si: SerialInterval, t_max: int) -> np.ndarray:
    """Reversed serial interval weights for lags t_max..0

    Args:
        si: ContinuousKernel, DiscreteKernel, a callable of the lag, or raw masses
        t_max (int): largest lag needed, n_days + number of observed days - 1
    Returns:
        ws (nparray(t_max + 1,)): ws[0] is the weight of lag t_max, ws[-1] of lag 0
    Raises:
        ConfigurationError
    """
    if t_max < 0:
        raise ConfigurationError("t_max must be >= 0")
    kernel = as_serial_kernel(si)

    if int(kernel.interval) != 1:
        raise ConfigurationError(
            f"interval used in si is not 1 day, but {kernel.interval}"
        )

    w = kernel.weights(t_max)
    if np.any(~np.isfinite(w)) or np.any(w < 0):
        raise ConfigurationError("Serial interval weights must be finite and >= 0")

    return w[::-1].copy()


@lru_cache(maxsize=64)
def _gamma_masses(shape, scale, w, n_lags):
    g = gamma(a=shape, scale=scale)
    lags = np.arange(n_lags, dtype=float)
    # Mass at lag k covers [k - w, k + 1 - w): w=0 floors, w=0.5 centres
    upper = g.cdf(lags + 1.0 - w)
    lower = g.cdf(np.clip(lags - w, 0.0, None))
    return upper - lower


def gamma_serial_interval(shape: float, scale: float, w: float = 0.0) -> ContinuousKernel:
    """Daily discretised gamma serial interval

    This takes the shape and scale of a gamma distribution and returns
    a kernel whose mass at lag k is F(k + 1 - w) - F(k - w).
    Args:
        shape (float): gamma shape parameter
        scale (float): gamma scale parameter
        w (float): position of the day boundaries, between 0 and 1
    Returns:
        ContinuousKernel
    Raises:
        ConfigurationError
    """
    if shape <= 0 or scale <= 0:
        raise ConfigurationError("Gamma shape and scale must be > 0")
    if not 0.0 <= w <= 1.0:
        raise ConfigurationError("w must be between 0 and 1")
    shape, scale, w = float(shape), float(scale), float(w)

    def mass(lags):
        lags = np.asarray(lags, dtype=int)
        if lags.size == 0:
            return np.zeros(0)
        table = _gamma_masses(shape, scale, w, int(lags.max()) + 1)
        out = np.zeros(lags.shape, dtype=float)
        ok = lags >= 0
        out[ok] = table[lags[ok]]
        return out

    return ContinuousKernel(mass=mass, interval=1)


def gamma_serial_interval_from_moments(mean: float, std: float, w: float = 0.0) -> ContinuousKernel:
    """Same as gamma_serial_interval, parameterised by mean and standard deviation."""
    if mean <= 0 or std <= 0:
        raise ConfigurationError("Mean and std of the serial interval must be > 0")
    alpha = (mean / std) ** 2
    theta = std ** 2 / mean
    return gamma_serial_interval(shape=alpha, scale=theta, w=w)
