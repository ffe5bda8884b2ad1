# src/outbreak_projections/incidence.py
"""
Observed incidence handed to the projection code.

Only what the simulator needs is kept here: the counts (one column per
group), the dates of each row and the time step between rows.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError


@dataclass(frozen=True, eq=False)
class Incidence:
    """Counts per time step, rows are dates and columns are groups.

    Attributes:
        counts (np.ndarray (n_dates, n_groups)): non-negative integer counts
        dates (pd.DatetimeIndex or np.ndarray): one date (or integer day) per row
        interval (int): number of days between consecutive rows
    """
    counts: np.ndarray
    dates: Union[pd.DatetimeIndex, np.ndarray]
    interval: int = 1

    def __post_init__(self):
        counts = np.asarray(self.counts)
        if counts.ndim == 1:
            counts = counts.reshape(-1, 1)
        if counts.ndim != 2:
            raise ConfigurationError("Incidence counts must be 1D or 2D")
        if counts.shape[0] == 0:
            raise ConfigurationError("Incidence must contain at least one date")
        if not np.issubdtype(counts.dtype, np.number):
            raise ConfigurationError("Incidence counts must be numeric")
        if np.any(~np.isfinite(counts)) or np.any(counts < 0):
            raise ConfigurationError("Incidence counts must be finite and >= 0")
        if np.any(counts != np.round(counts)):
            raise ConfigurationError("Incidence counts must be whole numbers")

        dates = as_dates(self.dates)
        if len(dates) != counts.shape[0]:
            raise ConfigurationError(
                f"Got {len(dates)} dates for {counts.shape[0]} rows of counts"
            )

        # Frozen dataclass: write the normalised fields through object.__setattr__
        object.__setattr__(self, "counts", counts.astype(np.int64))
        object.__setattr__(self, "dates", dates)
        object.__setattr__(self, "interval", int(self.interval))

    @property
    def n_dates(self) -> int:
        return int(self.counts.shape[0])

    @property
    def n_groups(self) -> int:
        return int(self.counts.shape[1])

    @property
    def is_datetime(self) -> bool:
        return isinstance(self.dates, pd.DatetimeIndex)

    @classmethod
    def from_series(cls, series: pd.Series) -> "Incidence":
        """Single group incidence from a Series indexed by date (or integer day)."""
        return cls(
            counts=series.to_numpy(),
            dates=series.index,
            interval=infer_interval(series.index),
        )

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "Incidence":
        """Incidence with one group per column of `frame`."""
        return cls(
            counts=frame.to_numpy(),
            dates=frame.index,
            interval=infer_interval(frame.index),
        )

    @classmethod
    def from_counts(
        cls,
        counts: Sequence[int],
        start: Optional[Union[str, pd.Timestamp, int]] = 0,
    ) -> "Incidence":
        """Daily incidence starting at `start` (a date, or an integer day index)."""
        n = len(counts)
        if isinstance(start, (int, np.integer)):
            dates = np.arange(int(start), int(start) + n)
        else:
            dates = pd.date_range(pd.Timestamp(start), periods=n, freq="D")
        return cls(counts=np.asarray(counts), dates=dates, interval=1)


def as_dates(dates) -> Union[pd.DatetimeIndex, np.ndarray]:
    """Dates as a DatetimeIndex, or integer day indices as an int64 array."""
    if isinstance(dates, pd.DatetimeIndex):
        return dates
    arr = np.asarray(dates)
    if arr.dtype.kind in "OUSM":
        try:
            return pd.DatetimeIndex(arr)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Could not interpret dates: {exc}") from exc
    if np.issubdtype(arr.dtype, np.integer):
        return arr.astype(np.int64)
    if np.issubdtype(arr.dtype, np.floating) and np.all(arr == np.round(arr)):
        return arr.astype(np.int64)
    raise ConfigurationError("Dates must be datetimes or integer day indices")


def day_steps(dates) -> np.ndarray:
    """Differences in days between consecutive dates."""
    dates = as_dates(dates)
    if isinstance(dates, pd.DatetimeIndex):
        # Works whatever the resolution of the index (ns, us, s, ...)
        return np.diff(dates.values) / np.timedelta64(1, "D")
    return np.diff(dates).astype(float)


def infer_interval(dates) -> int:
    """Most common spacing (in days) between consecutive dates; 1 for a single date."""
    steps = day_steps(dates)
    if steps.size == 0:
        return 1
    values, freq = np.unique(steps, return_counts=True)
    return int(values[np.argmax(freq)])
