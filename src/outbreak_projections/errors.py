# src/outbreak_projections/errors.py
"""Exceptions raised by the projection code.

Everything derives from ValueError so callers that only catch ValueError
(as the simulation helpers always did) keep working.
"""


class ProjectionError(ValueError):
    """Base class for projection errors."""


class ConfigurationError(ProjectionError):
    """Invalid inputs or settings for a projection run."""


class EmptySelectionError(ProjectionError):
    """A subset removed every row (or every trajectory) of a projection."""

    def __init__(self, message="No data retained."):
        super().__init__(message)
