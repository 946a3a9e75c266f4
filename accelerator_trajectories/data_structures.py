from __future__ import annotations

import math
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Union

import numpy as np
import numpy.typing as npt

from .constants import ZERO_VECTOR_NORM2
from .exceptions import NormalizationError

__all__: List[str] = [
    "Vector",
    "RGB",
    "ZERO_VECTOR",
    "X_VECTOR",
    "Y_VECTOR",
    "Z_VECTOR",
    "TrajectoryPoint",
    "StepResult",
    "ElementData",
    "Trajectory",
    "Trajectories",
]


@dataclass(frozen=True)
class Vector:
    """
    Three component real vector

    Attributes:
        x (float): x component
        y (float): y component
        z (float): z component
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    # numpy scalars defer to __rmul__ instead of broadcasting over the components
    __array_ufunc__ = None

    def __add__(self, other: Vector) -> Vector:
        return Vector(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector) -> Vector:
        return Vector(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> Vector:
        return Vector(-self.x, -self.y, -self.z)

    def __mul__(self, scalar: float) -> Vector:
        return Vector(scalar * self.x, scalar * self.y, scalar * self.z)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Vector:
        return Vector(self.x / scalar, self.y / scalar, self.z / scalar)

    def __getitem__(self, i: int) -> float:
        """
        Component access by index

        Args:
            i (int): component index, 0, 1 or 2

        Raises:
            IndexError: index outside 0..2

        Returns:
            float: component i
        """
        if i == 0:
            return self.x
        elif i == 1:
            return self.y
        elif i == 2:
            return self.z
        raise IndexError(f"Vector component index must be 0, 1 or 2, got {i!r}")

    def __len__(self) -> int:
        return 3

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __str__(self) -> str:
        return f"{self.x} {self.y} {self.z}"

    def dot(self, other: Vector) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector) -> Vector:
        return Vector(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def norm2(self) -> float:
        return self.dot(self)

    def norm(self) -> float:
        return math.sqrt(self.norm2())

    def unitary(self) -> Vector:
        """
        Unit vector along self

        Raises:
            NormalizationError: squared norm below ZERO_VECTOR_NORM2

        Returns:
            Vector: self / |self|
        """
        n2 = self.norm2()
        if n2 <= ZERO_VECTOR_NORM2:
            raise NormalizationError("Could not normalize zero-vector")
        return self / math.sqrt(n2)

    def orthogonal(self) -> Vector:
        """
        An arbitrary unit vector orthogonal to self, used to build local transverse
        frames. The axis least aligned with self is crossed with it.

        Returns:
            Vector: unit vector orthogonal to self
        """
        u = self.unitary()
        ax, ay, az = abs(u.x), abs(u.y), abs(u.z)
        if ax <= ay and ax <= az:
            axis = X_VECTOR
        elif ay <= az:
            axis = Y_VECTOR
        else:
            axis = Z_VECTOR
        return u.cross(axis).unitary()

    def rotated_z(self, angle: float) -> Vector:
        """
        Rotate counterclockwise around the z axis

        Args:
            angle (float): rotation angle [rad]

        Returns:
            Vector: rotated vector
        """
        c = math.cos(angle)
        s = math.sin(angle)
        return Vector(c * self.x - s * self.y, s * self.x + c * self.y, self.z)

    @staticmethod
    def mixed_prod(a: Vector, b: Vector, c: Vector) -> float:
        """Triple product a · (b × c)"""
        return a.dot(b.cross(c))

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, array: Union[npt.ArrayLike, List[float]]) -> Vector:
        x, y, z = np.asarray(array, dtype=np.float64)
        return cls(float(x), float(y), float(z))


ZERO_VECTOR = Vector(0.0, 0.0, 0.0)
X_VECTOR = Vector(1.0, 0.0, 0.0)
Y_VECTOR = Vector(0.0, 1.0, 0.0)
Z_VECTOR = Vector(0.0, 0.0, 1.0)


@dataclass(frozen=True)
class RGB:
    """
    Display color of a particle

    Attributes:
        r (float): red, 0 to 1
        g (float): green, 0 to 1
        b (float): blue, 0 to 1
    """

    r: float = 1.0
    g: float = 1.0
    b: float = 1.0

    def __getitem__(self, i: int) -> float:
        if i == 0:
            return self.r
        elif i == 1:
            return self.g
        elif i == 2:
            return self.b
        raise IndexError(f"RGB index must be 0, 1 or 2, got {i!r}")

    def __iter__(self) -> Iterator[float]:
        yield self.r
        yield self.g
        yield self.b


class TrajectoryPoint(NamedTuple):
    """
    Point on the design path of a beamline

    Attributes:
        position (Vector): world position of the point
        direction (Vector): unit tangent of the design path at the point
        element (int): handle of the element holding the point
    """

    position: Vector
    direction: Vector
    element: int


class StepResult(NamedTuple):
    """
    Outcome of stepping the particles resident in one element

    Attributes:
        lost (List[int]): handles of particles that hit the chamber wall, already
                            removed from the element
        exited (List[int]): handles of particles past the exit face, still resident
        returned (List[int]): handles of particles upstream of the entry face, still
                                resident
    """

    lost: List[int]
    exited: List[int]
    returned: List[int]


@dataclass(frozen=True)
class ElementData:
    """
    Bookkeeping of a single element of the beamline

    Attributes
        name (str): name of the element
        nr_entered (int): number of particles that entered or were seeded in the element
        nr_collisions (int): number of particles lost to the chamber wall
        nr_resident (int): number of particles currently inside the element
        survived (int): number of particles not lost in the element
        throughput (float): survival rate of the element
    """

    name: str
    nr_entered: int
    nr_collisions: int
    nr_resident: int
    survived: int = field(init=False)
    throughput: float = field(init=False)

    def __post_init__(self):
        super().__setattr__("survived", self.nr_entered - self.nr_collisions)
        super().__setattr__(
            "throughput",
            self.survived / self.nr_entered if self.nr_entered else math.nan,
        )


@dataclass
class Trajectory:
    """
    Trajectory holds the timestamps, positions and velocities for a single particle

    Attributes:
        t (ndarray[float]): timestamps [s]
        positions (ndarray[float]): positions, shape (n, 3) [m]
        velocities (ndarray[float]): velocities, shape (n, 3) [m/s]
        index (int): handle of the particle
    """

    t: npt.NDArray[np.float64]
    positions: npt.NDArray[np.float64]
    velocities: npt.NDArray[np.float64]
    index: int

    def __getitem__(self, i: int) -> tuple:
        return self.t[i], self.positions[i], self.velocities[i]

    def __len__(self):
        return len(self.t)

    @property
    def x(self) -> npt.NDArray[np.float64]:
        return self.positions[:, 0]

    @property
    def y(self) -> npt.NDArray[np.float64]:
        return self.positions[:, 1]

    @property
    def z(self) -> npt.NDArray[np.float64]:
        return self.positions[:, 2]

    def append(self, t: float, position: Vector, velocity: Vector) -> None:
        """
        append a timestamp, position and velocity to the trajectory

        Args:
            t (float): timestamp [s]
            position (Vector): position [m]
            velocity (Vector): velocity [m/s]
        """
        self.t = np.append(self.t, t)
        self.positions = np.vstack([self.positions, position.to_array()])
        self.velocities = np.vstack([self.velocities, velocity.to_array()])


class Trajectories(MutableMapping):
    """
    Holds multiple Trajectory objects, keyed by particle handle
    """

    def __init__(self, *args, **kwargs):
        self._storage = dict(*args, **kwargs)

    def __getitem__(self, key):
        return self._storage[key]

    def __iter__(self):
        return iter(self._storage)

    def __len__(self):
        return len(self._storage)

    def __repr__(self):
        return f"Trajectories(n={self.__len__()})"

    def __delitem__(self, key):
        del self._storage[key]

    def __setitem__(self, key, value):
        assert isinstance(value, Trajectory)
        self._storage[key] = value

    def add_data(
        self,
        index: int,
        t: float,
        position: Vector,
        velocity: Vector,
    ) -> None:
        """
        Add data to Trajectory `index`, create trajectory if not present

        Args:
            index (int): particle handle
            t (float): timestamp [s]
            position (Vector): position [m]
            velocity (Vector): velocity [m/s]
        """
        if index not in self._storage:
            self.__setitem__(
                index,
                Trajectory(
                    np.array([t], dtype=np.float64),
                    position.to_array()[np.newaxis, :],
                    velocity.to_array()[np.newaxis, :],
                    index,
                ),
            )
        else:
            self._storage[index].append(t, position, velocity)
