# src/outbreak_projections/simulate/simulate_projections.py
"""
Settings for a projection run kept in one dataclass, plus a small wrapper
so calling code can build the settings once and reuse them.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence
import logging

from numpy.random import default_rng

from ..incidence import Incidence
from ..projection import Projection
from .project import project

# Start logger
logger = logging.getLogger(__name__)


@dataclass
class ProjectionConfig:
    n_sim: int = 100
    n_days: int = 7
    R_fix_within: bool = False
    model: str = "poisson"
    size: float = 0.03
    time_change: Sequence[int] = field(default_factory=tuple)
    seed: Optional[int] = None

    def with_overrides(self, **changes) -> "ProjectionConfig":
        """Copy of the config with some fields changed."""
        return replace(self, **changes)


def run_projection(cfg: ProjectionConfig, x: Incidence, R, si) -> Projection:
    """Run `project` with the settings held in cfg."""
    rng = default_rng(cfg.seed)
    time_change = None if cfg.time_change is None else list(cfg.time_change)

    proj = project(
        x,
        R=R,
        si=si,
        n_sim=int(cfg.n_sim),
        n_days=int(cfg.n_days),
        R_fix_within=cfg.R_fix_within,
        model=cfg.model,
        size=cfg.size,
        time_change=time_change or None,
        rng=rng,
    )

    logger.info("Projection shape: %s (seed=%s)", proj.shape, cfg.seed)
    return proj
