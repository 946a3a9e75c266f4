from typing import List

from scipy import constants as sc

__all__: List[str] = []

# physical constants in SI units
C: float = sc.c
E: float = sc.e
PROTON_MASS: float = sc.m_p
ELECTRON_MASS: float = sc.m_e

# simulation tolerances
ZERO_TIME: float = 1e-30
ZERO_DISTANCE: float = 1e-10
ZERO_VECTOR_NORM2: float = 1e-50

DEFAULT_MASS: float = 1.0
DEFAULT_RADIUS: float = 1.0

# points placed on the entry face of an element by `Element.sample_points`
DEFAULT_SAMPLE_POINTS: int = 64
