from __future__ import annotations

import logging
import math
from typing import Iterator, List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from .accelerator import Accelerator
from .beamline_objects import Element
from .common_types import Canvas
from .data_structures import ZERO_VECTOR, Vector
from .exceptions import ConfigurationError
from .particles import Particle
from .random_generation import generate_random_transverse_normal

__all__ = ["Beam", "CircularBeam"]

LOGGER = logging.getLogger(__name__)

# columns of the local phase space array
_RADIAL, _VERTICAL, _V_RADIAL, _V_VERTICAL, _V_TANGENT = range(5)


class Beam:
    """
    Ensemble of macro-particles seeded from a model particle into an accelerator.

    The base class only tracks the particles listed in `handles`; seeding along the
    habitat is done by specializations such as `CircularBeam`.

    Attributes:
        habitat (Accelerator): accelerator the macro-particles live in
        model (Particle): model particle, supplies mass, charge, speed and color
        number_of_particles (float): number of real particles in the beam
        lam (float): number of real particles per macro-particle
        N (int): number of macro-particles
        handles (List[int]): handles of the macro-particles in the habitat
        nr_lost (int): macro-particles forgotten by `update` after leaving the habitat
    """

    def __init__(
        self,
        habitat: Accelerator,
        model: Particle,
        number_of_particles: float,
        lam: float = 1.0,
    ) -> None:
        if not lam > 0:
            raise ConfigurationError(
                f"Macro-particle weight lambda must be positive, got {lam}"
            )
        self.habitat = habitat
        self.model = model.copy()
        self.number_of_particles = number_of_particles
        self.lam = lam
        self.N = int(number_of_particles / lam)
        self.handles: List[int] = []
        self.nr_lost = 0

    def particles(self) -> Iterator[Tuple[Particle, Element]]:
        """Iterate over the live macro-particles and the elements holding them"""
        for handle in self.handles:
            if self.habitat.is_alive(handle):
                yield self.habitat.particle(handle), self.habitat.element_of(handle)

    @property
    def nr_alive(self) -> int:
        return sum(1 for handle in self.handles if self.habitat.is_alive(handle))

    def update(self) -> None:
        """Forget the macro-particles that are no longer in the habitat"""
        alive = [handle for handle in self.handles if self.habitat.is_alive(handle)]
        self.nr_lost += len(self.handles) - len(alive)
        self.handles = alive

    def evolve(self, dt: float) -> None:
        self.habitat.evolve(dt)
        self.update()

    def mean_energy(self) -> float:
        """
        Mean energy per macro-particle, (λ/N) Σ E over the live macro-particles [J]

        Returns:
            float: mean energy, 0 when the beam has no macro-particles
        """
        if self.N == 0:
            return 0.0
        total = sum(particle.energy() for particle, _ in self.particles())
        return (self.lam / self.N) * total

    def _local_phase_space(self) -> npt.NDArray[np.float64]:
        """
        Positions and velocities of the live macro-particles in the local frame of
        their element, one row (radial, vertical, v_radial, v_vertical, v_tangent)
        per particle.
        """
        rows = []
        for particle, element in self.particles():
            local = element.local_coords(particle.position)
            e_radial, e_vertical, e_tangent = element.local_frame(particle.position)
            rows.append(
                (
                    local.x,
                    local.y,
                    particle.velocity.dot(e_radial),
                    particle.velocity.dot(e_vertical),
                    particle.velocity.dot(e_tangent),
                )
            )
        return np.array(rows, dtype=np.float64).reshape(-1, 5)

    def mean_position(self) -> Vector:
        """
        Mean radial and vertical offset from the local design path [m]

        Returns:
            Vector: (radial, vertical, 0), the zero vector if no particle is alive
        """
        data = self._local_phase_space()
        if len(data) == 0:
            return ZERO_VECTOR
        return Vector(data[:, _RADIAL].mean(), data[:, _VERTICAL].mean(), 0.0)

    def mean_velocity(self) -> Vector:
        """
        Mean radial and vertical velocity in the local frame [m/s]

        Returns:
            Vector: (radial, vertical, 0), the zero vector if no particle is alive
        """
        data = self._local_phase_space()
        if len(data) == 0:
            return ZERO_VECTOR
        return Vector(data[:, _V_RADIAL].mean(), data[:, _V_VERTICAL].mean(), 0.0)

    def _second_moments(
        self, position: int, velocity: int
    ) -> Optional[Tuple[float, float, float]]:
        # centered <u²>, <u'²>, <u u'> with u' = v_u / v_tangent; the slope u' is
        # undefined for particles without tangential velocity, they are left out
        data = self._local_phase_space()
        data = data[data[:, _V_TANGENT] != 0]
        if len(data) < 2:
            return None
        u = data[:, position]
        up = data[:, velocity] / data[:, _V_TANGENT]
        du = u - u.mean()
        dup = up - up.mean()
        return float(np.mean(du**2)), float(np.mean(dup**2)), float(np.mean(du * dup))

    def _emittance(self, position: int, velocity: int) -> float:
        moments = self._second_moments(position, velocity)
        if moments is None:
            return 0.0
        uu, pp, up = moments
        return math.sqrt(max(0.0, uu * pp - up**2))

    def _ellipse_coefficients(
        self, position: int, velocity: int
    ) -> Tuple[float, float, float]:
        moments = self._second_moments(position, velocity)
        emittance = self._emittance(position, velocity)
        if moments is None or emittance <= 0:
            return (math.nan, math.nan, math.nan)
        uu, pp, up = moments
        return (pp / emittance, -up / emittance, uu / emittance)

    def radial_emittance(self) -> float:
        """RMS emittance in the radial phase plane [m rad]"""
        return self._emittance(_RADIAL, _V_RADIAL)

    def vertical_emittance(self) -> float:
        """RMS emittance in the vertical phase plane [m rad]"""
        return self._emittance(_VERTICAL, _V_VERTICAL)

    def radial_ellipse_coefficients(self) -> Tuple[float, float, float]:
        """
        Coefficients (γ, α, β) of the RMS phase space ellipse
        γ u² + 2 α u u' + β u'² = ε in the radial plane; NaN when the emittance is
        zero.
        """
        return self._ellipse_coefficients(_RADIAL, _V_RADIAL)

    def vertical_ellipse_coefficients(self) -> Tuple[float, float, float]:
        """Coefficients (γ, α, β) of the RMS ellipse in the vertical phase plane"""
        return self._ellipse_coefficients(_VERTICAL, _V_VERTICAL)

    def draw(self, canvas: Canvas):
        return canvas.draw(self)

    def __str__(self) -> str:
        lines = [
            "Beam:",
            f"   Macro-particles: {self.N} (lambda = {self.lam})",
            f"   Alive: {self.nr_alive}",
            f"   Mean energy: {self.mean_energy()}",
            f"   Mean position: {self.mean_position()}",
            f"   Mean velocity: {self.mean_velocity()}",
            "Model particle:",
            str(self.model),
        ]
        return "\n".join(lines)


class CircularBeam(Beam):
    """
    Beam seeded evenly along a closed ring.

    Attributes:
        position_spread (float): sigma of the transverse position offsets [m]
        velocity_spread (float): sigma of the transverse velocity offsets [m/s]
    """

    def __init__(
        self,
        habitat: Accelerator,
        model: Particle,
        number_of_particles: float,
        lam: float = 1.0,
        position_spread: float = 0.0,
        velocity_spread: float = 0.0,
    ) -> None:
        super().__init__(habitat, model, number_of_particles, lam)
        self.position_spread = position_spread
        self.velocity_spread = velocity_spread

    def activate(self, rng: Optional[np.random.Generator] = None) -> List[int]:
        """
        Seed N macro-particles at evenly spaced distances along the ring, moving along
        the design path (against it for a negative charge) with the speed of the model
        particle.

        Args:
            rng (Optional[np.random.Generator], optional): random number generator for
                                                            the transverse spreads.
                                                            Defaults to None.

        Raises:
            ConfigurationError: the habitat is not a closed ring

        Returns:
            List[int]: handles of the seeded macro-particles
        """
        if not self.habitat.closed:
            raise ConfigurationError("A circular beam needs a closed accelerator")
        if self.N == 0:
            return []

        spacing = self.habitat.length() / self.N
        speed = self.model.speed()
        if self.model.charge < 0:
            speed = -speed

        offsets = np.zeros((self.N, 2))
        kicks = np.zeros((self.N, 2))
        if self.position_spread > 0:
            offsets = generate_random_transverse_normal(
                self.position_spread, self.N, rng=rng
            )
        if self.velocity_spread > 0:
            kicks = generate_random_transverse_normal(
                self.velocity_spread, self.N, rng=rng
            )

        offsets = offsets.tolist()
        kicks = kicks.tolist()

        seeded = []
        for i in range(self.N):
            point = self.habitat.position_and_trajectory(i * spacing)
            element = self.habitat.element(point.element)
            e_radial, e_vertical, _ = element.local_frame(point.position)

            particle = self.model.copy()
            particle.place(
                point.position + offsets[i][0] * e_radial + offsets[i][1] * e_vertical,
                speed * point.direction
                + kicks[i][0] * e_radial
                + kicks[i][1] * e_vertical,
            )
            particle.scale(self.lam)
            seeded.append(self.habitat.add_particle(particle, element=point.element))

        self.handles.extend(seeded)
        LOGGER.info(
            "Seeded %d macro-particles (lambda = %g) along %g m",
            len(seeded),
            self.lam,
            self.habitat.length(),
        )
        return seeded
