from typing import List

__all__: List[str] = [
    "BeamlineError",
    "NormalizationError",
    "GeometryError",
    "ConfigurationError",
    "SpeedOfLightError",
]


class BeamlineError(ValueError):
    """Base class of the errors raised by the beamline model."""


class NormalizationError(BeamlineError):
    """A unit vector was requested for a (near-)zero vector."""


class GeometryError(BeamlineError):
    """Inconsistent beamline geometry, e.g. non-matching link points."""


class ConfigurationError(BeamlineError):
    """Invalid construction parameters for an element, particle or beam."""


class SpeedOfLightError(BeamlineError):
    """Relativistic quantity requested for a particle moving at or above c."""
