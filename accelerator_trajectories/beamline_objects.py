from __future__ import annotations

import itertools
import logging
import math
from typing import Dict, Iterator, List, Optional, Tuple

from joblib import Parallel, delayed

from .common_types import Canvas, FieldType
from .constants import DEFAULT_SAMPLE_POINTS, ZERO_DISTANCE
from .data_structures import StepResult, Vector, Z_VECTOR
from .exceptions import ConfigurationError, GeometryError
from .numba_functions import _axis_distance2, _torus_distance2
from .particles import Particle
from .propagation_options import PropagationOptions

__all__ = [
    "Element",
    "StraightSection",
    "ElectricElement",
    "MagneticElement",
    "Dipole",
    "Quadrupole",
    "RadiofrequencyCavity",
    "FieldElement",
]

LOGGER = logging.getLogger(__name__)

# process-wide element handles, used for the successor/predecessor links
_element_handles = itertools.count()


class EntryFaceCircle:
    """
    Points evenly distributed on the circle of the entry face of an element. Finite
    and restartable: every iteration yields the same `number` points.
    """

    def __init__(self, center: Vector, normal: Vector, radius: float, number: int):
        self.center = center
        self.radius = radius
        self.number = number
        v = normal.orthogonal()
        self._u = normal.cross(v)
        self._v = v

    def __len__(self) -> int:
        return self.number

    def __iter__(self) -> Iterator[Vector]:
        for i in range(self.number):
            theta = 2 * math.pi * i / self.number
            yield self.center + self.radius * (
                math.sin(theta) * self._u + math.cos(theta) * self._v
            )


class Element:
    """
    Segment of the beamline between an entry and an exit point, either straight or a
    circular arc, with a vacuum chamber of constant radius. An element owns the
    particles currently inside it.

    Attributes:
        entry_point (Vector): entry position [m]
        exit_point (Vector): exit position [m]
        radius (float): radius of the vacuum chamber [m]
        curvature (float): signed curvature of the design path [1/m], zero for a
                            straight element; positive curvature turns clockwise seen
                            from +z
        name (str): name of the element
        handle (int): unique handle of the element
        successor (Optional[int]): handle of the next element
        predecessor (Optional[int]): handle of the previous element
        particles (Dict[int, Particle]): resident particles keyed by particle handle
        nr_entered (int): number of particles that were added to the element
        nr_collisions (int): number of particles lost to the chamber wall
    """

    kind: str = "Element"
    has_electric_field: bool = False
    has_magnetic_field: bool = False

    def __init__(
        self,
        entry_point: Vector,
        exit_point: Vector,
        radius: float,
        curvature: float = 0.0,
        name: Optional[str] = None,
    ) -> None:
        if not radius > 0:
            raise ConfigurationError(f"Chamber radius must be positive, got {radius}")
        if (exit_point - entry_point).norm() <= ZERO_DISTANCE:
            raise GeometryError("Entry and exit points of an element must differ")
        self.entry_point = entry_point
        self.exit_point = exit_point
        self.radius = radius
        self.curvature = curvature
        if not self.is_straight():
            if not math.isclose(entry_point.z, exit_point.z, abs_tol=ZERO_DISTANCE):
                raise GeometryError(
                    "A curved element must lie in a plane of constant z"
                )
            if abs(curvature) * self.length() / 2 > 1.0:
                raise GeometryError(
                    f"Curvature {curvature} too large for a chord of {self.length()} m"
                )

        self.handle = next(_element_handles)
        self.name = name if name is not None else f"{self.kind}_{self.handle}"
        self.successor: Optional[int] = None
        self.predecessor: Optional[int] = None
        self.particles: Dict[int, Particle] = {}
        self.nr_entered = 0
        self.nr_collisions = 0

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, entry={self.entry_point}, "
            f"exit={self.exit_point}, radius={self.radius}, "
            f"curvature={self.curvature})"
        )

    # geometry

    def is_straight(self) -> bool:
        return abs(self.curvature) <= ZERO_DISTANCE

    def center(self) -> Vector:
        """
        Center of the circular design path

        Raises:
            GeometryError: element is straight

        Returns:
            Vector: center of curvature [m]
        """
        if self.is_straight():
            raise GeometryError("Center of circle with zero curvature is undefined")
        d = self.direction()
        k = self.curvature
        offset = (1.0 / k) * math.sqrt(max(0.0, 1.0 - k * k * d.norm2() / 4.0))
        return 0.5 * (self.entry_point + self.exit_point) + offset * d.unitary().cross(
            Z_VECTOR
        )

    def arc_radius(self) -> float:
        """Bending radius 1/|k| [m]"""
        if self.is_straight():
            raise GeometryError("Bending radius of a straight element is undefined")
        return 1.0 / abs(self.curvature)

    def direction(self) -> Vector:
        """Chord vector exit - entry"""
        return self.exit_point - self.entry_point

    def unit_direction(self) -> Vector:
        return self.direction().unitary()

    def length(self) -> float:
        """Chord length between entry and exit [m]"""
        return self.direction().norm()

    def path_length(self) -> float:
        """Length of the design path, the arc length for a curved element [m]"""
        if self.is_straight():
            return self.length()
        R = self.arc_radius()
        return 2 * R * math.asin(min(1.0, self.length() / (2 * R)))

    def _sign(self) -> float:
        return math.copysign(1.0, self.curvature)

    def _transverse_axes(self) -> Tuple[Vector, Vector]:
        """horizontal and vertical unit axes of a straight element"""
        u = self.unit_direction()
        n = u.cross(Z_VECTOR)
        if n.norm() <= ZERO_DISTANCE:
            n = u.orthogonal()
        else:
            n = n.unitary()
        return n, n.cross(u)

    def _arc_tangent(self, point: Vector) -> Vector:
        b = point - self.center()
        b = Vector(b.x, b.y, 0.0).unitary()
        return self._sign() * b.cross(Z_VECTOR)

    def entry_tangent(self) -> Vector:
        """Unit tangent of the design path at the entry point"""
        if self.is_straight():
            return self.unit_direction()
        return self._arc_tangent(self.entry_point)

    def exit_tangent(self) -> Vector:
        """Unit tangent of the design path at the exit point"""
        if self.is_straight():
            return self.unit_direction()
        return self._arc_tangent(self.exit_point)

    def relative_coords(self, x: Vector) -> Vector:
        """
        Position relative to the origin of the element frame, the entry point for a
        straight element and the center of curvature for a curved one.
        """
        if self.is_straight():
            return x - self.entry_point
        return x - self.center()

    def curvilinear_coord(self, x: Vector) -> float:
        """
        Coordinate along the design path of the projection of x, zero at the entry
        point [m]
        """
        if self.is_straight():
            return self.relative_coords(x).dot(self.unit_direction())
        c = self.center()
        a = self.entry_point - c
        r = x - c
        b = Vector(r.x, r.y, 0.0)
        angle = math.atan2(-self._sign() * (a.x * b.y - a.y * b.x), a.dot(b))
        return self.arc_radius() * angle

    def local_coords(self, x: Vector) -> Vector:
        """
        Coordinates of x in the curvilinear frame of the element.

        Args:
            x (Vector): world position [m]

        Returns:
            Vector: (radial offset, vertical offset, curvilinear coordinate) [m]; the
                    radial offset is along tangent × z for a straight element and
                    outward from the center of curvature for a curved one
        """
        r = self.relative_coords(x)
        if self.is_straight():
            n, up = self._transverse_axes()
            return Vector(r.dot(n), r.dot(up), r.dot(self.unit_direction()))
        rho = math.hypot(r.x, r.y)
        return Vector(rho - self.arc_radius(), r.z, self.curvilinear_coord(x))

    def local_frame(self, x: Vector) -> Tuple[Vector, Vector, Vector]:
        """
        Unit vectors of the curvilinear frame at the projection of x onto the design
        path.

        Returns:
            Tuple[Vector, Vector, Vector]: radial, vertical and tangent unit vectors
        """
        if self.is_straight():
            n, up = self._transverse_axes()
            return n, up, self.unit_direction()
        r = x - self.center()
        radial = Vector(r.x, r.y, 0.0).unitary()
        return radial, Z_VECTOR, self._sign() * radial.cross(Z_VECTOR)

    def inverse_curvilinear_coord(self, s: float) -> Vector:
        """
        Point on the design path at curvilinear coordinate s

        Args:
            s (float): curvilinear coordinate [m]

        Returns:
            Vector: world position [m]
        """
        if self.is_straight():
            return self.entry_point + s * self.unit_direction()
        c = self.center()
        angle = -self._sign() * s / self.arc_radius()
        return c + (self.entry_point - c).rotated_z(angle)

    def trajectory(self, s: float) -> Vector:
        """Unit tangent of the design path at curvilinear coordinate s"""
        if self.is_straight():
            return self.unit_direction()
        return self._arc_tangent(self.inverse_curvilinear_coord(s))

    def sample_points(self, number: int = DEFAULT_SAMPLE_POINTS) -> EntryFaceCircle:
        """
        Points evenly distributed on the circle of chamber radius in the entry face,
        for visualization.

        Args:
            number (int, optional): number of points. Defaults to
                                    DEFAULT_SAMPLE_POINTS.

        Returns:
            EntryFaceCircle: restartable iterable of points
        """
        return EntryFaceCircle(
            self.entry_point, self.entry_tangent(), self.radius, number
        )

    # collisions and transitions

    def has_collided(self, x: Vector) -> bool:
        """
        Check if a position lies on or beyond the wall of the vacuum chamber

        Args:
            x (Vector): position [m]

        Returns:
            bool: True if x is outside the chamber
        """
        r = self.relative_coords(x)
        if self.is_straight():
            u = self.unit_direction()
            distance2 = _axis_distance2(r.x, r.y, r.z, u.x, u.y, u.z)
        else:
            distance2 = _torus_distance2(r.x, r.y, r.z, self.arc_radius())
        return distance2 >= self.radius**2

    def _face_side(self, x: Vector, point: Vector) -> float:
        # sign of the offset from a face point along the design tangent at that face
        if self.is_straight():
            return (x - point).dot(self.unit_direction())
        return self._sign() * Vector.mixed_prod(
            x - point, point - self.center(), Z_VECTOR
        )

    def is_before(self, x: Vector) -> bool:
        """True if x lies upstream of the entry face"""
        return self._face_side(x, self.entry_point) < 0

    def is_after(self, x: Vector) -> bool:
        """True if x lies on or downstream of the exit face"""
        return self._face_side(x, self.exit_point) >= 0

    def contains(self, x: Vector) -> bool:
        """True if x lies between the entry and exit faces"""
        return not self.is_before(x) and not self.is_after(x)

    # linking

    def link(self, next_element: Element) -> None:
        """
        Link this element to the next element of the beamline

        Args:
            next_element (Element): element following this one

        Raises:
            GeometryError: exit point of self differs from the entry point of
                            next_element
        """
        if self.exit_point != next_element.entry_point:
            raise GeometryError(
                "Could not link elements with non-matching exit/entry points: "
                f"{self.name} exit {self.exit_point}, "
                f"{next_element.name} entry {next_element.entry_point}"
            )
        self.successor = next_element.handle
        next_element.predecessor = self.handle

    # particles

    @property
    def nr_particles(self) -> int:
        return len(self.particles)

    def add_particle(self, handle: int, particle: Particle) -> None:
        if handle in self.particles:
            raise ValueError(f"Particle {handle} already resides in {self.name}")
        self.particles[handle] = particle
        self.nr_entered += 1

    def remove_particle(self, handle: int) -> Particle:
        return self.particles.pop(handle)

    # fields and forces

    def E(self, x: Vector, t: float = 0.0) -> Vector:
        raise NotImplementedError

    def B(self, x: Vector, t: float = 0.0) -> Vector:
        raise NotImplementedError

    def add_lorentz_force(self, particle: Particle, dt: float, time: float) -> None:
        """
        Add the electromagnetic force of the element on the particle

        Args:
            particle (Particle): particle inside the element
            dt (float): timestep [s]
            time (float): simulation time [s]
        """
        if self.has_electric_field:
            particle.add_electric_force(self.E(particle.position, time))
        if self.has_magnetic_field:
            particle.add_magnetic_force(self.B(particle.position, time), dt)

    def step_particle(self, particle: Particle, dt: float, time: float) -> None:
        particle.clear_force()
        self.add_lorentz_force(particle, dt, time)
        particle.evolve(dt)

    def evolve(
        self,
        dt: float,
        time: float = 0.0,
        options: Optional[PropagationOptions] = None,
    ) -> StepResult:
        """
        Integrate the resident particles one timestep, drop the particles that hit the
        chamber wall and report the particles that crossed the exit or the entry face.

        Particles outside the faces stay resident; handing them to the successor or
        the predecessor is up to the caller.

        Args:
            dt (float): timestep [s]
            time (float, optional): simulation time of the step [s]. Defaults to 0.
            options (Optional[PropagationOptions], optional): propagation options.
                                                            Defaults to None.

        Returns:
            StepResult: handles of lost particles, of particles past the exit face and
                        of particles moved back upstream of the entry face
        """
        items = list(self.particles.items())
        if (
            options is not None
            and options.n_cores > 1
            and len(items) >= max(2, options.parallel_threshold)
        ):
            # particles do not interact, the integration of each is independent
            Parallel(
                n_jobs=options.n_cores, prefer="threads", verbose=int(options.verbose)
            )(delayed(self.step_particle)(p, dt, time) for _, p in items)
        else:
            for _, particle in items:
                self.step_particle(particle, dt, time)

        lost: List[int] = []
        exited: List[int] = []
        returned: List[int] = []
        for handle, particle in items:
            if self.has_collided(particle.position):
                del self.particles[handle]
                lost.append(handle)
            elif self.is_after(particle.position):
                exited.append(handle)
            elif self.is_before(particle.position):
                returned.append(handle)

        if lost:
            self.nr_collisions += len(lost)
            LOGGER.debug("%s: %d particles hit the chamber wall", self.name, len(lost))
        return StepResult(lost, exited, returned)

    # reporting and drawing

    def _parameters(self) -> List[str]:
        return []

    def __str__(self) -> str:
        lines = [
            f"{self.kind}:",
            f"   Entry point: {self.entry_point}",
            f"   Exit point: {self.exit_point}",
            f"   Chamber radius: {self.radius}",
            f"   Curvature: {self.curvature}",
        ]
        if not self.is_straight():
            lines.append(f"   Center of curvature: {self.center()}")
        lines.extend(f"   {line}" for line in self._parameters())
        return "\n".join(lines)

    def draw(self, canvas: Canvas):
        return canvas.draw(self)

    def draw_particles(self, canvas: Canvas) -> None:
        for particle in self.particles.values():
            particle.draw(canvas)


class StraightSection(Element):
    """Straight element without electromagnetic field."""

    kind = "Straight section"

    def __init__(
        self,
        entry_point: Vector,
        exit_point: Vector,
        radius: float,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(entry_point, exit_point, radius, 0.0, name)


class ElectricElement(Element):
    """Element acting on particles through an electric field `E(x, t)`."""

    kind = "Electric element"
    has_electric_field = True


class MagneticElement(Element):
    """Element acting on particles through a magnetic field `B(x, t)`."""

    kind = "Magnetic element"
    has_magnetic_field = True


class Dipole(MagneticElement):
    """
    Bending dipole with a uniform vertical magnetic field.

    Attributes:
        B_0 (float): magnetic field amplitude along z [T]
    """

    kind = "Dipole"

    def __init__(
        self,
        entry_point: Vector,
        exit_point: Vector,
        radius: float,
        curvature: float,
        B_0: float,
        name: Optional[str] = None,
    ) -> None:
        if abs(curvature) <= ZERO_DISTANCE:
            raise ConfigurationError("Dipole must have nonzero curvature")
        super().__init__(entry_point, exit_point, radius, curvature, name)
        self.B_0 = B_0

    @staticmethod
    def bending_field(
        mass: float, charge: float, speed: float, curvature: float
    ) -> float:
        """
        Field amplitude that keeps a particle on a path of the given curvature.

        Args:
            mass (float): particle mass [kg]
            charge (float): particle charge [C]
            speed (float): particle speed [m/s]
            curvature (float): signed curvature of the path [1/m]

        Returns:
            float: B_0 [T]
        """
        if charge == 0:
            raise ConfigurationError("A neutral particle cannot be bent by a dipole")
        return mass * speed * curvature / charge

    def B(self, x: Vector, t: float = 0.0) -> Vector:
        return self.B_0 * Z_VECTOR

    def _parameters(self) -> List[str]:
        return [f"Magnetic amplitude: B_0 = {self.B_0}"]


class Quadrupole(MagneticElement):
    """
    Straight focusing quadrupole; the field grows linearly with the transverse offset
    from the axis, B = b [(X·z) u + (X·u) z] with u = z × d.

    Attributes:
        b (float): field gradient [T/m]
    """

    kind = "Quadrupole"

    def __init__(
        self,
        entry_point: Vector,
        exit_point: Vector,
        radius: float,
        b: float,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(entry_point, exit_point, radius, 0.0, name)
        self.b = b

    def B(self, x: Vector, t: float = 0.0) -> Vector:
        d = self.unit_direction()
        X = x - self.entry_point
        X = X - X.dot(d) * d
        u = Z_VECTOR.cross(d)
        return self.b * (X.dot(Z_VECTOR) * u + X.dot(u) * Z_VECTOR)

    def _parameters(self) -> List[str]:
        return [f"Quadrupole parameter: b = {self.b}"]


class RadiofrequencyCavity(ElectricElement):
    """
    Accelerating cavity with an oscillating electric field along the design path,
    E = E_0 sin(ω t + κ s + φ) t(s).

    Attributes:
        E_0 (float): field amplitude [V/m]
        omega (float): angular frequency [rad/s]
        kappa (float): wave number [rad/m]
        phi (float): phase [rad]
    """

    kind = "Radiofrequency cavity"

    def __init__(
        self,
        entry_point: Vector,
        exit_point: Vector,
        radius: float,
        curvature: float,
        E_0: float,
        omega: float,
        kappa: float,
        phi: float,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(entry_point, exit_point, radius, curvature, name)
        self.E_0 = E_0
        self.omega = omega
        self.kappa = kappa
        self.phi = phi

    def E(self, x: Vector, t: float = 0.0) -> Vector:
        s = self.curvilinear_coord(x)
        tangent = self.local_frame(x)[2]
        return (
            self.E_0 * math.sin(self.omega * t + self.kappa * s + self.phi)
        ) * tangent

    def _parameters(self) -> List[str]:
        return [
            f"Electric amplitude: E_0 = {self.E_0}",
            f"Angular frequency: omega = {self.omega}",
            f"Wave number: kappa = {self.kappa}",
            f"Phase: phi = {self.phi}",
        ]


class FieldElement(Element):
    """
    Element with user supplied field functions of position and time.

    Attributes:
        electric_field (Optional[FieldType]): E(x, t) [V/m]
        magnetic_field (Optional[FieldType]): B(x, t) [T]
    """

    kind = "Field element"

    def __init__(
        self,
        entry_point: Vector,
        exit_point: Vector,
        radius: float,
        curvature: float = 0.0,
        electric_field: Optional[FieldType] = None,
        magnetic_field: Optional[FieldType] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(entry_point, exit_point, radius, curvature, name)
        self.electric_field = electric_field
        self.magnetic_field = magnetic_field
        self.has_electric_field = electric_field is not None
        self.has_magnetic_field = magnetic_field is not None

    def E(self, x: Vector, t: float = 0.0) -> Vector:
        if self.electric_field is None:
            raise NotImplementedError
        return self.electric_field(x, t)

    def B(self, x: Vector, t: float = 0.0) -> Vector:
        if self.magnetic_field is None:
            raise NotImplementedError
        return self.magnetic_field(x, t)

    def _parameters(self) -> List[str]:
        return [
            f"Electric field: {'yes' if self.has_electric_field else 'no'}",
            f"Magnetic field: {'yes' if self.has_magnetic_field else 'no'}",
        ]
