import math

import pytest

from accelerator_trajectories.constants import C, E, PROTON_MASS
from accelerator_trajectories.data_structures import ZERO_VECTOR, Vector
from accelerator_trajectories.exceptions import ConfigurationError, SpeedOfLightError
from accelerator_trajectories.particles import Electron, Particle, Proton


def test_evolve_without_force():
    p = Particle(Vector(1.0, 2.0, 3.0), Vector(0.5, -1.0, 2.0))
    p.evolve(0.1)
    assert p.velocity == Vector(0.5, -1.0, 2.0)
    assert math.isclose(p.position.x, 1.05)
    assert math.isclose(p.position.y, 1.9)
    assert math.isclose(p.position.z, 3.2)
    assert p.previous_position == Vector(1.0, 2.0, 3.0)
    assert p.previous_velocity == Vector(0.5, -1.0, 2.0)


def test_evolve_with_constant_force():
    p = Particle(ZERO_VECTOR, Vector(1.0, 0.0, 0.0), mass=2.0)
    p.add_force(Vector(0.0, 4.0, 0.0))
    p.evolve(0.5)
    # new velocity first, then position from the new velocity
    assert p.velocity == Vector(1.0, 1.0, 0.0)
    assert p.position == Vector(0.5, 0.5, 0.0)


def test_magnetic_force():
    p = Particle(ZERO_VECTOR, Vector(1.0, 0.0, 0.0), charge=2.0)
    p.add_magnetic_force(Vector(0.0, 0.0, 1.0), 1e-3)
    assert p.force == Vector(0.0, -2.0, 0.0)


@pytest.mark.parametrize("dt", [0.0, 1e-30, 1e-40])
def test_magnetic_force_skipped_for_degenerate_step(dt):
    p = Particle(ZERO_VECTOR, Vector(1.0, 0.0, 0.0), charge=2.0)
    p.add_magnetic_force(Vector(0.0, 0.0, 1.0), dt)
    assert p.force == ZERO_VECTOR


def test_electric_force_and_clear():
    p = Particle(charge=-1.0)
    p.add_electric_force(Vector(1.0, 2.0, 3.0))
    p.add_electric_force(Vector(1.0, 0.0, 0.0))
    assert p.force == Vector(-2.0, -2.0, -3.0)
    p.clear_force()
    assert p.force == ZERO_VECTOR


def test_gamma_and_energy():
    p = Particle(velocity=Vector(0.0, 0.6 * C, 0.0), mass=2.0)
    assert math.isclose(p.gamma(), 1.25)
    assert math.isclose(p.energy(), 1.25 * 2.0 * C**2)
    assert Particle(mass=3.0).gamma() == 1.0
    assert math.isclose(p.momentum().y, 1.25 * 2.0 * 0.6 * C)


@pytest.mark.parametrize("speed", [C, 1.5 * C])
def test_gamma_at_or_above_speed_of_light(speed):
    p = Particle(velocity=Vector(speed, 0.0, 0.0))
    with pytest.raises(SpeedOfLightError):
        p.gamma()
    with pytest.raises(SpeedOfLightError):
        p.energy()


@pytest.mark.parametrize("mass", [0.0, -1.0])
def test_non_positive_mass(mass):
    with pytest.raises(ConfigurationError):
        Particle(mass=mass)


def test_copy_and_scale():
    p = Proton(Vector(1.0, 0.0, 0.0), Vector(0.0, 1.0, 0.0))
    p.add_force(Vector(1.0, 1.0, 1.0))
    duplicate = p.copy()
    assert duplicate.position == p.position
    assert duplicate.force == ZERO_VECTOR
    duplicate.place(Vector(5.0, 5.0, 5.0), Vector(2.0, 0.0, 0.0))
    duplicate.scale(3.0)
    assert p.position == Vector(1.0, 0.0, 0.0)
    assert p.weight == 1.0
    assert duplicate.weight == 3.0
    assert duplicate.previous_position == Vector(5.0, 5.0, 5.0)


def test_presets():
    assert Proton().mass == PROTON_MASS
    assert Proton().charge == E
    assert Electron().charge == -E


def test_report():
    report = str(Particle(mass=1.0, charge=1.0))
    assert "Mass: 1.0" in report
    assert "Gamma: 1.0" in report
