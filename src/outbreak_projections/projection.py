# src/outbreak_projections/projection.py
"""
Projection objects: simulated incidence with dates in rows and
simulations (trajectories) in columns.
"""

from __future__ import annotations

import numbers
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError, EmptySelectionError
from .incidence import as_dates


class Projection:
    """Matrix of projected counts together with its dates.

    Attributes:
        counts (np.ndarray (n_days, n_sim)): projected counts
        dates (pd.DatetimeIndex or np.ndarray): one date (or integer day) per row
        cumulative (bool): True if counts are cumulative rather than incidence
        r_values (np.ndarray or None): R used for each day and trajectory,
            when the projection comes straight from `project`
    """

    __hash__ = None

    def __init__(self, counts, dates, cumulative: bool = False, r_values=None):
        counts = np.asarray(counts)
        if counts.ndim != 2:
            raise ConfigurationError("Projection counts must be a 2D matrix")
        dates = as_dates(dates)
        if len(dates) != counts.shape[0]:
            raise ConfigurationError(
                f"Got {len(dates)} dates for {counts.shape[0]} rows of counts"
            )
        if r_values is not None:
            r_values = np.asarray(r_values, dtype=float)
            if r_values.shape != counts.shape:
                raise ConfigurationError("r_values must have the same shape as counts")

        self._counts = counts
        self._dates = dates
        self._cumulative = bool(cumulative)
        self._r_values = r_values

    # ---------- accessors ----------

    @property
    def counts(self) -> np.ndarray:
        return self._counts.copy()

    @property
    def dates(self) -> Union[pd.DatetimeIndex, np.ndarray]:
        return self._dates.copy()

    @property
    def cumulative(self) -> bool:
        return self._cumulative

    @property
    def r_values(self) -> Optional[np.ndarray]:
        return None if self._r_values is None else self._r_values.copy()

    @property
    def n_days(self) -> int:
        return int(self._counts.shape[0])

    @property
    def n_sim(self) -> int:
        return int(self._counts.shape[1])

    @property
    def shape(self):
        return self._counts.shape

    @property
    def is_datetime(self) -> bool:
        return isinstance(self._dates, pd.DatetimeIndex)

    def __array__(self, dtype=None, copy=None):
        return np.array(self._counts, dtype=dtype)

    def __len__(self) -> int:
        return self.n_days

    def __repr__(self) -> str:
        kind = "cumulative" if self._cumulative else "incidence"
        if self.n_days:
            span = f"{_fmt_date(self._dates[0])} to {_fmt_date(self._dates[-1])}"
        else:
            span = "no dates"
        return f"<Projection {kind}: {self.n_days} days x {self.n_sim} sims, {span}>"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Projection):
            return NotImplemented
        return (
            self._cumulative == other._cumulative
            and self.is_datetime == other.is_datetime
            and np.array_equal(self._dates, other._dates)
            and np.array_equal(self._counts, other._counts)
        )

    # ---------- indexing and subsetting ----------

    def __getitem__(self, key) -> Projection:
        """Positional indexing, p[rows] or p[rows, sims]; p[:] is a copy."""
        if isinstance(key, tuple):
            if len(key) != 2:
                raise IndexError("Projection takes at most two indices (rows, sims)")
            rows, cols = key
        else:
            rows, cols = key, slice(None)
        rows = _keep_dims(rows)
        cols = _keep_dims(cols)

        counts = self._counts[rows][:, cols]
        dates = self._dates[rows]
        r_values = None if self._r_values is None else self._r_values[rows][:, cols]
        return Projection(counts, dates, cumulative=self._cumulative, r_values=r_values)

    def subset(self, from_=None, to=None, sim=None) -> Projection:
        """Keep dates between `from_` and `to` (inclusive) and selected simulations

        Args:
            from_: first date kept; a date, or a day index. With datetime dates
                an integer is a 1-based row position.
            to: last date kept, same rules as `from_`
            sim: None or "all", a boolean mask over simulations (recycled when
                shorter), or integer positions of the simulations to keep
        Returns:
            a new Projection
        Raises:
            EmptySelectionError
        """
        keep_rows = np.ones(self.n_days, dtype=bool)
        if from_ is not None:
            keep_rows &= self._compare_dates(from_, ">=")
        if to is not None:
            keep_rows &= self._compare_dates(to, "<=")
        if not keep_rows.any():
            raise EmptySelectionError("No data retained.")

        cols = _sim_selector(sim, self.n_sim)
        if cols is not None and np.size(cols) == 0:
            raise EmptySelectionError("No data retained.")

        return self[np.flatnonzero(keep_rows), slice(None) if cols is None else cols]

    def _compare_dates(self, bound, op: str) -> np.ndarray:
        if self.is_datetime and _is_integer(bound):
            # 1-based row position
            target = np.arange(1, self.n_days + 1)
            bound = int(bound)
        elif self.is_datetime:
            target = self._dates
            try:
                bound = pd.Timestamp(bound)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"Cannot compare {bound!r} with dates") from exc
        else:
            if not isinstance(bound, numbers.Real):
                raise ConfigurationError(
                    f"Projection dates are day indices; cannot compare with {bound!r}"
                )
            target = self._dates
        mask = target >= bound if op == ">=" else target <= bound
        return np.asarray(mask, dtype=bool)

    # ---------- transformations ----------

    def cumulate(self) -> Projection:
        """Cumulative counts over dates, for each simulation."""
        if self._cumulative:
            raise ConfigurationError("x is already cumulative incidence")
        return Projection(
            np.cumsum(self._counts, axis=0),
            self._dates,
            cumulative=True,
            r_values=self._r_values,
        )

    def __add__(self, other) -> Projection:
        if isinstance(other, numbers.Number):
            return Projection(self._counts + other, self._dates, cumulative=self._cumulative)
        if not isinstance(other, Projection):
            return NotImplemented
        return merge_add_projections([self, other])

    __radd__ = __add__

    def to_frame(self, long: bool = False) -> pd.DataFrame:
        """Counts as a DataFrame.

        Wide format has one row per date and columns sim_1..sim_n; long format
        has columns date, sim and incidence (or cumulative).
        """
        columns = [f"sim_{j}" for j in range(1, self.n_sim + 1)]
        wide = pd.DataFrame(self._counts, index=pd.Index(self._dates, name="date"), columns=columns)
        if not long:
            return wide
        value_name = "cumulative" if self._cumulative else "incidence"
        out = wide.reset_index().melt(id_vars="date", var_name="sim", value_name=value_name)
        out["sim"] = out["sim"].str.slice(4).astype(int)
        return out


# ---------- module level helpers ----------

def build_projection(counts, dates, cumulative: bool = False, order_dates: bool = True) -> Projection:
    """Build a Projection from a counts matrix and its dates.

    Rows are sorted by date unless `order_dates` is False; dates must be unique.
    """
    counts = np.asarray(counts)
    if counts.ndim == 1:
        counts = counts.reshape(-1, 1)
    dates = as_dates(dates)
    if len(dates) != counts.shape[0]:
        raise ConfigurationError(
            f"Got {len(dates)} dates for {counts.shape[0]} rows of counts"
        )
    if len(pd.unique(np.asarray(dates))) != len(dates):
        raise ConfigurationError("Projection dates must be unique")
    if order_dates:
        order = np.argsort(np.asarray(dates), kind="stable")
        counts = counts[order]
        dates = dates[order]
    return Projection(counts, dates, cumulative=cumulative)


def merge_projections(projections: Iterable[Projection]) -> Projection:
    """Put the simulations of several projections side by side.

    All projections must share the same dates and the same cumulative flag.
    """
    projections = list(projections)
    if not projections:
        raise ConfigurationError("No projections to merge")
    first = projections[0]
    for p in projections[1:]:
        if p.cumulative != first.cumulative:
            raise ConfigurationError("Cannot merge cumulative and non-cumulative projections")
        if p.is_datetime != first.is_datetime or not np.array_equal(p._dates, first._dates):
            raise ConfigurationError("Projections to merge must have identical dates")
    counts = np.hstack([p._counts for p in projections])
    return Projection(counts, first._dates, cumulative=first.cumulative)


def merge_add_projections(projections: Iterable[Projection]) -> Projection:
    """Add projections together over the union of their dates.

    Dates missing from a projection count as zero. All projections need the
    same number of simulations and the same cumulative flag.
    """
    projections = list(projections)
    if not projections:
        raise ConfigurationError("No projections to add")
    first = projections[0]
    for p in projections[1:]:
        if p.n_sim != first.n_sim:
            raise ConfigurationError(
                f"Cannot add projections with {first.n_sim} and {p.n_sim} simulations"
            )
        if p.cumulative != first.cumulative:
            raise ConfigurationError("Cannot add cumulative and non-cumulative projections")
        if p.is_datetime != first.is_datetime:
            raise ConfigurationError("Cannot add projections with different date types")

    frames = [p.to_frame() for p in projections]
    total = frames[0]
    for frame in frames[1:]:
        total = total.add(frame, fill_value=0)
    total = total.sort_index()
    return Projection(
        total.to_numpy().astype(np.result_type(*[p._counts.dtype for p in projections])),
        total.index,
        cumulative=first.cumulative,
    )


def _fmt_date(d) -> str:
    return d.strftime("%Y-%m-%d") if isinstance(d, pd.Timestamp) else str(d)


def _is_integer(value) -> bool:
    return isinstance(value, (numbers.Integral, np.integer)) and not isinstance(value, bool)


def _keep_dims(index):
    """Single integers would drop a dimension; wrap them in a list."""
    if _is_integer(index):
        return [int(index)]
    return index


def _sim_selector(sim, n_sim: int):
    """Column selector for `subset`, None meaning every simulation."""
    if sim is None or (isinstance(sim, str) and sim == "all"):
        return None
    if isinstance(sim, str):
        raise ConfigurationError(f"Unknown simulation selector {sim!r}")
    sel = np.atleast_1d(np.asarray(sim))
    if sel.size == 0:
        return np.zeros(0, dtype=np.int64)
    if sel.dtype == bool:
        if sel.size > n_sim:
            raise ConfigurationError(
                f"Boolean selector has {sel.size} values for {n_sim} simulations"
            )
        # Shorter masks are recycled over the simulations
        mask = np.resize(sel, n_sim)
        return np.flatnonzero(mask)
    if not np.issubdtype(sel.dtype, np.integer):
        raise ConfigurationError("Simulations must be selected by boolean mask or integer position")
    if np.any(sel >= n_sim) or np.any(sel < -n_sim):
        raise ConfigurationError(f"Simulation index out of range for {n_sim} simulations")
    return sel
