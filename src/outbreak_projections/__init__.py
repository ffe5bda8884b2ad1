"""Renewal-equation projections of daily outbreak incidence."""

from .version_info import VERSION as __version__  # noqa: F401
from .errors import ProjectionError, ConfigurationError, EmptySelectionError  # noqa: F401
from .incidence import Incidence  # noqa: F401
from .projection import Projection, build_projection, merge_projections  # noqa: F401
from .simulate.calculate_serial_weights import (  # noqa: F401
    ContinuousKernel,
    DiscreteKernel,
    gamma_serial_interval,
)
from .simulate.reproduction_numbers import SinglePeriod, MultiPeriod  # noqa: F401
from .simulate.project import project  # noqa: F401
