import math

import numpy as np
import pytest

from accelerator_trajectories.beamline_objects import (
    Dipole,
    FieldElement,
    Quadrupole,
    RadiofrequencyCavity,
    StraightSection,
)
from accelerator_trajectories.data_structures import ZERO_VECTOR, Vector
from accelerator_trajectories.exceptions import ConfigurationError, GeometryError
from accelerator_trajectories.particles import Particle


def bending_dipole(B_0, radius=0.2):
    # clockwise quarter circle of unit bending radius around the origin
    return Dipole(Vector(0.0, 1.0, 0.0), Vector(1.0, 0.0, 0.0), radius, 1.0, B_0)


def curved_section(radius=0.2):
    return FieldElement(
        Vector(0.0, 1.0, 0.0), Vector(1.0, 0.0, 0.0), radius, curvature=1.0
    )


def test_straight_element_has_no_center():
    element = StraightSection(Vector(), Vector(1.0, 0.0, 0.0), 0.1)
    assert element.is_straight()
    assert element.path_length() == 1.0
    with pytest.raises(GeometryError):
        element.center()


def test_invalid_elements():
    with pytest.raises(ConfigurationError):
        StraightSection(Vector(), Vector(1.0, 0.0, 0.0), 0.0)
    with pytest.raises(GeometryError):
        StraightSection(Vector(), Vector(), 0.1)
    with pytest.raises(GeometryError):
        # chord too long for the bending radius
        FieldElement(Vector(), Vector(1.0, 0.0, 0.0), 0.1, curvature=3.0)
    with pytest.raises(GeometryError):
        FieldElement(Vector(), Vector(1.0, 0.0, 1.0), 0.1, curvature=0.5)


@pytest.mark.parametrize("curvature", [0.5, -0.5, 1.9, -1.2])
def test_center_at_bending_radius(curvature):
    element = FieldElement(
        Vector(0.0, 0.0, 0.3), Vector(1.0, 0.0, 0.3), 0.1, curvature=curvature
    )
    c = element.center()
    assert math.isclose((element.entry_point - c).norm(), 1 / abs(curvature))
    assert math.isclose((element.exit_point - c).norm(), 1 / abs(curvature))


def test_curved_geometry():
    element = curved_section()
    assert np.allclose(element.center().to_array(), [0.0, 0.0, 0.0], atol=1e-12)
    assert math.isclose(element.path_length(), math.pi / 2)
    assert np.allclose(element.entry_tangent().to_array(), [1.0, 0.0, 0.0])
    assert np.allclose(element.exit_tangent().to_array(), [0.0, -1.0, 0.0])

    counterclockwise = FieldElement(
        Vector(0.0, 1.0, 0.0), Vector(-1.0, 0.0, 0.0), 0.2, curvature=-1.0
    )
    assert np.allclose(counterclockwise.center().to_array(), [0, 0, 0], atol=1e-12)
    assert np.allclose(counterclockwise.entry_tangent().to_array(), [-1.0, 0.0, 0.0])


def test_curvilinear_coordinates():
    element = curved_section()
    half = math.sqrt(2) / 2
    point = element.inverse_curvilinear_coord(math.pi / 4)
    assert np.allclose(point.to_array(), [half, half, 0.0])
    assert math.isclose(element.curvilinear_coord(point), math.pi / 4)
    assert np.allclose(element.trajectory(math.pi / 4).to_array(), [half, -half, 0])

    local = element.local_coords(Vector(1.1 * half, 1.1 * half, 0.05))
    assert np.allclose(local.to_array(), [0.1, 0.05, math.pi / 4])

    for s in [0.0, 0.3, 1.2, math.pi / 2]:
        x = element.inverse_curvilinear_coord(s)
        assert math.isclose(element.curvilinear_coord(x), s, abs_tol=1e-12)


def test_straight_local_coordinates():
    element = StraightSection(Vector(), Vector(2.0, 0.0, 0.0), 0.1)
    local = element.local_coords(Vector(0.5, 0.02, 0.01))
    # radial axis is tangent x z, here -y
    assert np.allclose(local.to_array(), [-0.02, 0.01, 0.5])
    radial, vertical, tangent = element.local_frame(Vector(0.5, 0.0, 0.0))
    assert radial == Vector(0.0, -1.0, 0.0)
    assert vertical == Vector(0.0, 0.0, 1.0)
    assert tangent == Vector(1.0, 0.0, 0.0)


def test_straight_collision():
    element = StraightSection(Vector(), Vector(1.0, 0.0, 0.0), 0.1)
    assert not element.has_collided(Vector(0.5, 0.05, 0.0))
    assert element.has_collided(Vector(0.5, 0.1, 0.0))
    assert element.has_collided(Vector(0.5, 0.0, -0.2))


def test_curved_collision():
    element = curved_section(0.2)
    half = math.sqrt(2) / 2
    assert not element.has_collided(Vector(1.1 * half, 1.1 * half, 0.0))
    assert element.has_collided(Vector(1.3 * half, 1.3 * half, 0.0))
    assert element.has_collided(Vector(half, half, 0.25))
    assert not element.has_collided(Vector(half, half, 0.1))


def test_faces_of_straight_element():
    element = StraightSection(Vector(), Vector(1.0, 0.0, 0.0), 0.1)
    assert element.is_before(Vector(-0.1, 0.0, 0.0))
    assert not element.is_before(Vector(0.0, 0.05, 0.0))
    assert element.contains(Vector(0.5, 0.0, 0.0))
    assert element.is_after(Vector(1.0, 0.0, 0.0))
    assert element.is_after(Vector(1.2, 0.0, 0.0))
    assert not element.contains(Vector(1.2, 0.0, 0.0))


def test_faces_of_curved_element():
    element = curved_section()
    half = math.sqrt(2) / 2
    assert element.is_before(Vector(-0.1, 1.0, 0.0))
    assert element.is_after(Vector(1.0, -0.1, 0.0))
    assert element.contains(Vector(half, half, 0.0))
    assert not element.contains(Vector(-0.1, 1.0, 0.0))


def test_link():
    first = StraightSection(Vector(), Vector(1.0, 0.0, 0.0), 0.1)
    second = StraightSection(Vector(1.0, 0.0, 0.0), Vector(2.0, 0.0, 0.0), 0.1)
    first.link(second)
    assert first.successor == second.handle
    assert second.predecessor == first.handle
    assert first.handle != second.handle


def test_link_mismatch_leaves_elements_unlinked():
    first = StraightSection(Vector(), Vector(1.0, 0.0, 0.0), 0.1)
    other = StraightSection(Vector(1.0, 0.1, 0.0), Vector(2.0, 0.0, 0.0), 0.1)
    with pytest.raises(GeometryError, match="non-matching"):
        first.link(other)
    assert first.successor is None
    assert other.predecessor is None


def test_sample_points():
    element = StraightSection(Vector(), Vector(0.0, 0.0, 2.0), 0.3)
    points = element.sample_points(12)
    assert len(points) == 12
    first_pass = list(points)
    assert list(points) == first_pass
    assert len(first_pass) == 12
    for point in first_pass:
        assert math.isclose((point - element.entry_point).norm(), 0.3)
        assert math.isclose(point.z, 0.0, abs_tol=1e-12)


def test_dipole():
    with pytest.raises(ConfigurationError):
        Dipole(Vector(), Vector(1.0, 0.0, 0.0), 0.1, 0.0, 1.0)
    dipole = bending_dipole(2.5)
    assert dipole.B(Vector(0.3, 0.4, 0.0)) == Vector(0.0, 0.0, 2.5)
    assert dipole.bending_field(2.0, 4.0, 3.0, 0.5) == 0.75
    with pytest.raises(ConfigurationError):
        Dipole.bending_field(1.0, 0.0, 1.0, 1.0)
    assert "B_0 = 2.5" in str(dipole)
    assert "Center of curvature" in str(dipole)


def test_quadrupole_field():
    quadrupole = Quadrupole(Vector(), Vector(1.0, 0.0, 0.0), 0.3, 2.0)
    B = quadrupole.B(Vector(0.5, 0.1, 0.2))
    assert np.allclose(B.to_array(), [0.0, 0.4, 0.2])
    assert quadrupole.B(Vector(0.7, 0.0, 0.0)) == ZERO_VECTOR


def test_quadrupole_focuses_horizontally():
    quadrupole = Quadrupole(Vector(), Vector(1.0, 0.0, 0.0), 0.3, 2.0)
    particle = Particle(Vector(0.5, 0.01, 0.0), Vector(1.0, 0.0, 0.0), charge=1.0)
    quadrupole.add_lorentz_force(particle, 1e-3, 0.0)
    assert particle.force.y < 0
    assert math.isclose(particle.force.y, -0.02)


def test_radiofrequency_cavity_field():
    cavity = RadiofrequencyCavity(
        Vector(), Vector(1.0, 0.0, 0.0), 0.1, 0.0, 3.0, 2.0, 0.5, 0.1
    )
    E_field = cavity.E(Vector(0.4, 0.0, 0.0), 1.5)
    assert np.allclose(E_field.to_array(), [3.0 * math.sin(3.0 + 0.2 + 0.1), 0, 0])
    assert not cavity.has_magnetic_field

    particle = Particle(Vector(0.4, 0.0, 0.0), charge=2.0)
    cavity.add_lorentz_force(particle, 1e-3, 1.5)
    assert math.isclose(particle.force.x, 2.0 * E_field.x)


def test_field_element():
    element = FieldElement(
        Vector(),
        Vector(1.0, 0.0, 0.0),
        0.1,
        electric_field=lambda x, t: Vector(t, 0.0, 0.0),
    )
    assert element.has_electric_field
    assert not element.has_magnetic_field
    with pytest.raises(NotImplementedError):
        element.B(Vector())
    particle = Particle(charge=1.0)
    element.step_particle(particle, 0.5, 2.0)
    assert particle.velocity == Vector(1.0, 0.0, 0.0)


def test_evolve_reports_losses_and_exits():
    element = StraightSection(Vector(), Vector(1.0, 0.0, 0.0), 0.1)
    element.add_particle(0, Particle(Vector(0.5, 0.0, 0.0), Vector(0.0, 1.0, 0.0)))
    element.add_particle(1, Particle(Vector(0.95, 0.0, 0.0), Vector(1.0, 0.0, 0.0)))
    element.add_particle(2, Particle(Vector(0.1, 0.0, 0.0), Vector(1.0, 0.0, 0.0)))
    element.add_particle(3, Particle(Vector(0.05, 0.0, 0.0), Vector(-1.0, 0.0, 0.0)))
    with pytest.raises(ValueError):
        element.add_particle(2, Particle())

    result = element.evolve(0.2)
    assert result.lost == [0]
    assert result.exited == [1]
    assert result.returned == [3]
    assert set(element.particles) == {1, 2, 3}
    assert element.nr_collisions == 1
    assert element.nr_entered == 4
    assert math.isclose(element.particles[2].position.x, 0.3)


def test_dipole_keeps_matched_particle_on_the_design_path():
    mass, charge, speed = 1.0, 1.0, 1.0
    B_0 = Dipole.bending_field(mass, charge, speed, 1.0)
    dipole = bending_dipole(B_0, radius=0.1)
    particle = Particle(
        dipole.entry_point, speed * dipole.entry_tangent(), mass=mass, charge=charge
    )
    dipole.add_particle(0, particle)
    for _ in range(1000):
        result = dipole.evolve(1e-3)
        assert not result.lost
    local = dipole.local_coords(particle.position)
    assert abs(local.x) < 1e-2
    assert math.isclose(local.z, 1.0, rel_tol=1e-2)
    assert dipole.contains(particle.position)
