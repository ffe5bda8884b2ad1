import numpy as np
import pandas as pd
import pytest

from outbreak_projections.errors import ConfigurationError, EmptySelectionError
from outbreak_projections.incidence import Incidence
from outbreak_projections.projection import (
    Projection,
    build_projection,
    merge_add_projections,
    merge_projections,
)
from outbreak_projections.simulate.calculate_serial_weights import gamma_serial_interval
from outbreak_projections.simulate.project import project


def day_projection(n_days=30, n_sim=4, first_day=7):
    counts = np.arange(n_days * n_sim).reshape(n_days, n_sim)
    return Projection(counts, np.arange(first_day, first_day + n_days))


def date_projection(n_days=30, n_sim=4):
    counts = np.arange(n_days * n_sim).reshape(n_days, n_sim)
    return Projection(counts, pd.date_range("1982-01-08", periods=n_days, freq="D"))


def simulated(start=0):
    x = Incidence.from_counts([0, 2, 2, 3, 3, 5, 5, 5, 6, 6, 6, 6], start=start)
    si = gamma_serial_interval(shape=1.5, scale=2.0)
    rng = np.random.default_rng(1)
    return project(x, rng.uniform(0.8, 1.9, 100), si, n_days=30, rng=rng)


def test_subset_without_arguments_is_identity():
    p = simulated()
    assert p.subset() == p
    assert p[:] == p
    assert p.subset() is not p


def test_subset_by_day_index_and_sims():
    p = simulated()
    # integer dates run 12..41
    sub = p.subset(from_=15, to=20, sim=list(range(10)))
    assert sub.shape == (6, 10)
    assert sub.dates.tolist() == [15, 16, 17, 18, 19, 20]
    assert np.array_equal(sub.counts, p.counts[3:9, :10])
    assert np.array_equal(sub.r_values, p.r_values[3:9, :10])


def test_subset_boolean_mask_is_recycled():
    p = day_projection(n_sim=4)
    sub = p.subset(from_=15, sim=[True, False])
    assert sub.n_sim == 2
    assert np.array_equal(sub.counts, p.counts[8:, [0, 2]])

    sub = p.subset(to=15, sim=[True, False])
    assert sub.dates.tolist() == list(range(7, 16))


def test_subset_empty_range_raises():
    p = simulated()
    with pytest.raises(EmptySelectionError, match="No data retained."):
        p.subset(from_=1, to=0)
    with pytest.raises(EmptySelectionError):
        p.subset(from_=20, to=15)
    with pytest.raises(EmptySelectionError):
        p.subset(sim=[])


def test_subset_order_of_selection_does_not_matter():
    p = day_projection(n_sim=6)
    a = p.subset(from_=10, to=20).subset(sim=[1, 3, 5])
    b = p.subset(sim=[1, 3, 5]).subset(from_=10, to=20)
    c = p.subset(from_=10, to=20, sim=[1, 3, 5])
    assert a == b == c


def test_subset_with_calendar_dates():
    p = simulated(start="1982-01-01")
    day = pd.Timestamp("1982-01-01")
    sub = p.subset(from_=day + pd.Timedelta(days=15), to=day + pd.Timedelta(days=20), sim=range(10))
    assert sub.shape == (6, 10)
    assert sub.dates[0] == pd.Timestamp("1982-01-16")

    # Integers are row positions when dates are calendar dates
    by_position = p.subset(from_=4, to=9, sim=range(10))
    assert by_position == sub

    assert p.subset(from_="1982-02-01").n_days == 11


def test_subset_bad_selectors_raise():
    p = day_projection(n_sim=3)
    with pytest.raises(ConfigurationError):
        p.subset(sim=[True, False, True, True])
    with pytest.raises(ConfigurationError):
        p.subset(sim=[5])
    with pytest.raises(ConfigurationError):
        p.subset(sim="some")
    with pytest.raises(ConfigurationError):
        p.subset(from_="1982-01-01")


def test_indexing_keeps_matrix_shape():
    p = day_projection()
    row = p[0]
    assert row.shape == (1, 4)
    cell = p[2, 3]
    assert cell.shape == (1, 1)
    assert cell.counts[0, 0] == p.counts[2, 3]


def test_cumulate():
    p = day_projection(n_days=3, n_sim=2)
    c = p.cumulate()
    assert c.cumulative
    assert np.array_equal(c.counts, np.cumsum(p.counts, axis=0))
    assert c != p
    with pytest.raises(ConfigurationError, match="already cumulative"):
        c.cumulate()


def test_add_number_and_projection():
    p = day_projection(n_days=3, n_sim=2)
    assert np.array_equal((p + 1).counts, p.counts + 1)
    assert np.array_equal((p + p).counts, 2 * p.counts)


def test_add_projections_with_different_dates():
    a = Projection(np.ones((3, 2), dtype=int), [1, 2, 3])
    b = Projection(np.full((2, 2), 5), [3, 4])
    total = a + b
    assert total.dates.tolist() == [1, 2, 3, 4]
    assert total.counts.tolist() == [[1, 1], [1, 1], [6, 6], [5, 5]]

    with pytest.raises(ConfigurationError):
        merge_add_projections([a, Projection(np.ones((3, 3)), [1, 2, 3])])
    with pytest.raises(ConfigurationError):
        a + a.cumulate()


def test_merge_projections_stacks_simulations():
    a = day_projection(n_sim=2)
    b = day_projection(n_sim=3)
    merged = merge_projections([a, b])
    assert merged.shape == (30, 5)
    assert np.array_equal(merged.counts[:, 2:], b.counts)

    with pytest.raises(ConfigurationError, match="identical dates"):
        merge_projections([a, day_projection(first_day=8)])
    with pytest.raises(ConfigurationError):
        merge_projections([])


def test_build_projection_orders_dates():
    p = build_projection([[3, 3], [1, 1], [2, 2]], [12, 10, 11])
    assert p.dates.tolist() == [10, 11, 12]
    assert p.counts[:, 0].tolist() == [1, 2, 3]

    kept = build_projection([3, 1], [12, 10], order_dates=False)
    assert kept.dates.tolist() == [12, 10]
    assert kept.shape == (2, 1)

    with pytest.raises(ConfigurationError, match="unique"):
        build_projection([1, 2], [10, 10])
    with pytest.raises(ConfigurationError):
        build_projection([1, 2, 3], [10, 11])


def test_to_frame_wide_and_long():
    p = date_projection(n_days=5, n_sim=3)
    wide = p.to_frame()
    assert wide.shape == (5, 3)
    assert list(wide.columns) == ["sim_1", "sim_2", "sim_3"]
    assert wide.index.name == "date"

    long = p.to_frame(long=True)
    assert len(long) == 15
    assert list(long.columns) == ["date", "sim", "incidence"]
    assert sorted(long["sim"].unique()) == [1, 2, 3]
    assert "cumulative" in p.cumulate().to_frame(long=True).columns


def test_projection_validation():
    with pytest.raises(ConfigurationError):
        Projection(np.arange(5), np.arange(5))
    with pytest.raises(ConfigurationError):
        Projection(np.ones((3, 2)), np.arange(4))
    with pytest.raises(ConfigurationError):
        Projection(np.ones((3, 2)), np.arange(3), r_values=np.ones((2, 2)))


def test_repr_mentions_shape():
    text = repr(date_projection(n_days=5, n_sim=3))
    assert "5 days x 3 sims" in text
    assert "1982-01-08" in text
