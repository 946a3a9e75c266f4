from . import (
    accelerator,
    beam,
    beamline_objects,
    data_structures,
    exceptions,
    particles,
    propagation,
    propagation_options,
    random_generation,
    visualization,
)
from .accelerator import Accelerator
from .beam import Beam, CircularBeam
from .data_structures import Vector
from .particles import Particle
from .propagation import propagate_trajectories
from .propagation_options import PropagationOptions

__all__ = [
    "Accelerator",
    "Beam",
    "CircularBeam",
    "Particle",
    "Vector",
    "propagate_trajectories",
    "PropagationOptions",
]
__all__ += accelerator.__all__.copy()
__all__ += beam.__all__.copy()
__all__ += beamline_objects.__all__.copy()
__all__ += data_structures.__all__.copy()
__all__ += exceptions.__all__.copy()
__all__ += particles.__all__.copy()
__all__ += propagation.__all__.copy()
__all__ += propagation_options.__all__.copy()
__all__ += random_generation.__all__.copy()
__all__ += visualization.__all__.copy()
