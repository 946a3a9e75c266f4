from __future__ import annotations

import itertools
import logging
import math
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .beamline_objects import Element
from .common_types import Canvas
from .constants import ZERO_DISTANCE
from .data_structures import ElementData, TrajectoryPoint
from .exceptions import GeometryError
from .particles import Particle
from .propagation_options import PropagationOptions

__all__ = ["Accelerator"]

LOGGER = logging.getLogger(__name__)


class Accelerator:
    """
    Ordered chain of linked elements, in beam travel order, either open or closed
    into a ring.

    Particles are addressed by integer handles; every live particle resides in exactly
    one element. Particles that could not be placed inside an element are kept in
    `unassigned` until `initialize` finds a home for them.

    Attributes:
        options (PropagationOptions): propagation options
        time (float): simulation clock [s], advanced once per `evolve`
        closed (bool): True if the last element is linked to the first
        unassigned (Dict[int, Particle]): particles outside every element
        nr_lost (int): number of particles lost to a chamber wall
        nr_exited (int): number of particles that left either end of an open chain
    """

    def __init__(
        self,
        elements: Sequence[Element] = (),
        particles: Sequence[Particle] = (),
        options: Optional[PropagationOptions] = None,
    ) -> None:
        self.options = options if options is not None else PropagationOptions()
        self.time = 0.0
        self.closed = False
        self.unassigned: Dict[int, Particle] = {}
        self.nr_lost = 0
        self.nr_exited = 0

        self._elements: List[Element] = []
        self._arena: Dict[int, Element] = {}
        # particle handle -> handle of the element it resides in
        self._residence: Dict[int, int] = {}
        self._particle_handles = itertools.count()

        for element in elements:
            self.add_element(element)
        for particle in particles:
            self.unassigned[next(self._particle_handles)] = particle
        if self.unassigned:
            self.initialize()

    # topology

    @property
    def elements(self) -> Tuple[Element, ...]:
        return tuple(self._elements)

    def element(self, handle: int) -> Element:
        return self._arena[handle]

    def add_element(self, element: Element) -> None:
        """
        Append an element to the end of the chain, linking it to the current last
        element.

        Args:
            element (Element): element to append

        Raises:
            GeometryError: the chain is closed, or the entry point of `element` does not
                            match the exit point of the last element
        """
        if self.closed:
            raise GeometryError("Cannot append an element to a closed ring")
        if self._elements:
            self._elements[-1].link(element)
        self._elements.append(element)
        self._arena[element.handle] = element

    def close(self) -> None:
        """
        Close the chain into a ring by linking the last element to the first.

        Raises:
            GeometryError: empty chain or non-matching link points
        """
        if not self._elements:
            raise GeometryError("Cannot close an empty beamline")
        self._elements[-1].link(self._elements[0])
        self.closed = True

    def length(self) -> float:
        """Total length of the design path [m]"""
        return sum(element.path_length() for element in self._elements)

    def position_and_trajectory(self, arc_length: float) -> TrajectoryPoint:
        """
        Position and direction of the design path at a distance along the chain.

        Args:
            arc_length (float): distance from the entry of the first element [m];
                                wraps around on a ring

        Raises:
            GeometryError: empty chain, or distance outside [0, length] on an open
                            chain

        Returns:
            TrajectoryPoint: position, unit tangent and element handle
        """
        if not self._elements:
            raise GeometryError("Empty beamline has no design path")
        total = self.length()
        if self.closed:
            s = arc_length % total
        elif 0.0 <= arc_length <= total or math.isclose(
            arc_length, total, abs_tol=ZERO_DISTANCE
        ):
            s = min(arc_length, total)
        else:
            raise GeometryError(
                f"Arc length {arc_length} m outside of open beamline of {total} m"
            )

        for element in self._elements:
            length = element.path_length()
            if s < length or element is self._elements[-1]:
                return TrajectoryPoint(
                    element.inverse_curvilinear_coord(s),
                    element.trajectory(s),
                    element.handle,
                )
            s -= length
        raise AssertionError("unreachable")

    # particles

    def _find_element(self, particle: Particle) -> Optional[Element]:
        for element in self._elements:
            if element.contains(particle.position) and not element.has_collided(
                particle.position
            ):
                return element
        return None

    def add_particle(self, particle: Particle, element: Optional[int] = None) -> int:
        """
        Add a particle to the beamline.

        Args:
            particle (Particle): particle to add, ownership moves to the beamline
            element (Optional[int], optional): handle of the element to insert the
                                                particle in. Defaults to None, the
                                                element containing the particle.

        Returns:
            int: handle of the particle
        """
        handle = next(self._particle_handles)
        target = self._arena[element] if element is not None else None
        if target is None:
            target = self._find_element(particle)
        if target is None:
            LOGGER.warning(
                "Particle %d at %s is outside every element", handle, particle.position
            )
            self.unassigned[handle] = particle
            return handle
        target.add_particle(handle, particle)
        self._residence[handle] = target.handle
        return handle

    def initialize(self) -> None:
        """Place the unassigned particles inside the elements containing them."""
        for handle, particle in list(self.unassigned.items()):
            element = self._find_element(particle)
            if element is None:
                LOGGER.warning(
                    "Particle %d at %s is outside every element",
                    handle,
                    particle.position,
                )
                continue
            del self.unassigned[handle]
            element.add_particle(handle, particle)
            self._residence[handle] = element.handle

    def is_alive(self, handle: int) -> bool:
        """True if the particle resides in an element of the beamline"""
        return handle in self._residence

    def element_of(self, handle: int) -> Element:
        return self._arena[self._residence[handle]]

    def particle(self, handle: int) -> Particle:
        if handle in self.unassigned:
            return self.unassigned[handle]
        return self.element_of(handle).particles[handle]

    def residents(self) -> Iterator[Tuple[int, Particle, Element]]:
        """Iterate over (handle, particle, element) for every live particle"""
        for element in self._elements:
            for handle, particle in element.particles.items():
                yield handle, particle, element

    @property
    def nr_particles(self) -> int:
        return len(self._residence)

    # dynamics

    def evolve(self, dt: float) -> None:
        """
        Advance every element one timestep in chain order.

        Fields are evaluated at the clock value of the start of the step. Particles
        crossing an exit face are handed to the successor, and particles moving back
        across an entry face to the predecessor, after all elements have been
        stepped, so a transferred particle is integrated again only on the next call.
        Particles leaving either end of an open chain are dropped. The clock is
        advanced by dt at the end.

        Args:
            dt (float): timestep [s]
        """
        transfers: List[Tuple[Element, int, Optional[int]]] = []
        for element in self._elements:
            result = element.evolve(dt, self.time, self.options)
            for handle in result.lost:
                del self._residence[handle]
            self.nr_lost += len(result.lost)
            transfers.extend(
                (element, handle, element.successor) for handle in result.exited
            )
            transfers.extend(
                (element, handle, element.predecessor) for handle in result.returned
            )

        for element, handle, target in transfers:
            particle = element.remove_particle(handle)
            if target is None:
                del self._residence[handle]
                self.nr_exited += 1
                continue
            self._arena[target].add_particle(handle, particle)
            self._residence[handle] = target

        self.time += dt
        LOGGER.debug(
            "t = %g s: %d particles alive, %d transfers, %d lost, %d exited",
            self.time,
            self.nr_particles,
            len(transfers),
            self.nr_lost,
            self.nr_exited,
        )

    def element_data(self) -> List[ElementData]:
        return [
            ElementData(e.name, e.nr_entered, e.nr_collisions, e.nr_particles)
            for e in self._elements
        ]

    # reporting and drawing

    def __str__(self) -> str:
        lines = [
            f"Accelerator ({'ring' if self.closed else 'open chain'}) of "
            f"{len(self._elements)} elements, length {self.length()} m:"
        ]
        for index, element in enumerate(self._elements):
            lines.append(f"{index}: {element}")
        lines.append(f"Particles: {self.nr_particles}")
        return "\n".join(lines)

    def draw(self, canvas: Canvas):
        return canvas.draw(self)

    def draw_particles(self, canvas: Canvas) -> None:
        for element in self._elements:
            element.draw_particles(canvas)
