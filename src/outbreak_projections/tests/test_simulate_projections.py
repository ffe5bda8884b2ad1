import logging

import numpy as np

from outbreak_projections.incidence import Incidence
from outbreak_projections.simulate.calculate_serial_weights import gamma_serial_interval
from outbreak_projections.simulate.project import project
from outbreak_projections.simulate.simulate_projections import (
    ProjectionConfig,
    run_projection,
)


def test_config_defaults():
    cfg = ProjectionConfig()
    assert cfg.n_sim == 100
    assert cfg.n_days == 7
    assert cfg.R_fix_within is False
    assert cfg.model == "poisson"
    assert cfg.size == 0.03
    assert tuple(cfg.time_change) == ()


def test_run_projection_matches_project(caplog):
    """
    run_projection should give exactly what project gives with the same
    settings and a generator seeded the same way.
    """
    x = Incidence.from_counts([1, 3, 2, 5, 4, 6])
    si = gamma_serial_interval(shape=1.5, scale=2.0)
    cfg = ProjectionConfig(n_sim=20, n_days=10, seed=7, time_change=[5])

    with caplog.at_level(logging.INFO):
        proj = run_projection(cfg, x, [1.5, 0.8], si)

    expected = project(
        x, [1.5, 0.8], si, n_sim=20, n_days=10, time_change=[5],
        rng=np.random.default_rng(7),
    )
    assert proj == expected
    assert "Projection shape" in caplog.text


def test_with_overrides_leaves_original_untouched():
    cfg = ProjectionConfig(n_sim=10)
    other = cfg.with_overrides(model="negbin", size=0.1)
    assert other.model == "negbin" and other.size == 0.1 and other.n_sim == 10
    assert cfg.model == "poisson"
