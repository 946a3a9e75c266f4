from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field

from .common_types import Canvas
from .constants import (
    C,
    DEFAULT_MASS,
    DEFAULT_RADIUS,
    E,
    ELECTRON_MASS,
    PROTON_MASS,
    ZERO_TIME,
)
from .data_structures import RGB, ZERO_VECTOR, Vector
from .exceptions import ConfigurationError, SpeedOfLightError

__all__ = ["Particle", "Proton", "Electron"]


@dataclass
class Particle:
    """
    Point mass and charge integrated with a leapfrog scheme.

    Attributes:
        position (Vector): position at time t [m]
        velocity (Vector): velocity at time t [m/s]
        mass (float): mass [kg]
        charge (float): charge [C]
        radius (float): collision radius [m]
        color (RGB): display color
        weight (float): number of real particles represented by this particle
        previous_position (Vector): position at time t - dt [m]
        previous_velocity (Vector): velocity at time t - dt [m/s]
        force (Vector): force accumulated for the current step [N]
    """

    position: Vector = ZERO_VECTOR
    velocity: Vector = ZERO_VECTOR
    mass: float = DEFAULT_MASS
    charge: float = 0.0
    radius: float = DEFAULT_RADIUS
    color: RGB = field(default_factory=RGB)
    weight: float = 1.0
    previous_position: Vector = field(init=False)
    previous_velocity: Vector = field(init=False)
    force: Vector = field(init=False, default=ZERO_VECTOR)

    def __post_init__(self):
        if not self.mass > 0:
            raise ConfigurationError(f"Particle mass must be positive, got {self.mass}")
        self.previous_position = self.position
        self.previous_velocity = self.velocity

    def place(self, position: Vector, velocity: Vector) -> None:
        """
        Move the particle to a new state; the previous state is reset to it.

        Args:
            position (Vector): position [m]
            velocity (Vector): velocity [m/s]
        """
        self.position = self.previous_position = position
        self.velocity = self.previous_velocity = velocity

    def clear_force(self) -> None:
        self.force = ZERO_VECTOR

    def add_force(self, force: Vector) -> None:
        self.force = self.force + force

    def add_magnetic_force(self, B: Vector, dt: float) -> None:
        """
        Accumulate the magnetic part of the Lorentz force, q v × B.

        Nothing is accumulated for a degenerate sub-step (dt <= ZERO_TIME).

        Args:
            B (Vector): magnetic field at the particle position [T]
            dt (float): timestep [s]
        """
        if dt > ZERO_TIME:
            self.force = self.force + self.charge * self.velocity.cross(B)

    def add_electric_force(self, E_field: Vector) -> None:
        """
        Accumulate the electric part of the Lorentz force, q E.

        Args:
            E_field (Vector): electric field at the particle position [V/m]
        """
        self.force = self.force + self.charge * E_field

    def evolve(self, dt: float) -> None:
        """
        Advance the particle one leapfrog step with the accumulated force; the new
        position is computed from the new velocity.

        Args:
            dt (float): timestep [s]
        """
        self.previous_velocity = self.velocity
        self.velocity = self.previous_velocity + (dt / self.mass) * self.force

        self.previous_position = self.position
        self.position = self.previous_position + dt * self.velocity

    def speed(self) -> float:
        return self.velocity.norm()

    def gamma(self) -> float:
        """
        Lorentz factor

        Raises:
            SpeedOfLightError: speed at or above the speed of light

        Returns:
            float: 1/sqrt(1 - v²/c²)
        """
        beta2 = self.velocity.norm2() / C**2
        if beta2 >= 1.0:
            raise SpeedOfLightError(
                f"Lorentz factor undefined for speed {math.sqrt(beta2)} c"
            )
        return 1.0 / math.sqrt(1.0 - beta2)

    def energy(self) -> float:
        """Total energy γ m c² [J]"""
        return self.gamma() * self.mass * C**2

    def momentum(self) -> Vector:
        """Relativistic momentum γ m v [kg m/s]"""
        return (self.gamma() * self.mass) * self.velocity

    def copy(self) -> Particle:
        """Independent copy with the same state and a cleared force accumulator"""
        duplicate = copy.copy(self)
        duplicate.clear_force()
        return duplicate

    def scale(self, lam: float) -> None:
        """Multiply the statistical weight by `lam`"""
        self.weight *= lam

    def draw(self, canvas: Canvas):
        return canvas.draw(self)

    def __str__(self) -> str:
        lines = [
            f"Mass: {self.mass}",
            f"Charge: {self.charge}",
            f"Radius: {self.radius}",
            f"Color: {self.color.r} {self.color.g} {self.color.b}",
            f"Weight: {self.weight}",
            f"Position: {self.position}",
            f"Velocity: {self.velocity}",
            f"Force: {self.force}",
            f"Energy: {self.energy()}",
            f"Gamma: {self.gamma()}",
        ]
        return "\n".join(lines)


@dataclass
class Proton(Particle):
    mass: float = PROTON_MASS  # mass in kg
    charge: float = E  # charge in C


@dataclass
class Electron(Particle):
    mass: float = ELECTRON_MASS  # mass in kg
    charge: float = -E  # charge in C
