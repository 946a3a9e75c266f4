import logging

import matplotlib.pyplot as plt
import numpy as np
from accelerator_trajectories import (
    Accelerator,
    CircularBeam,
    PropagationOptions,
    Vector,
    propagate_trajectories,
)
from accelerator_trajectories.beamline_objects import Dipole, Quadrupole
from accelerator_trajectories.particles import Proton
from accelerator_trajectories.visualization import plot_accelerator

logging.basicConfig(level=logging.INFO)

speed = 1e6  # m/s
bending_radius = 1.0  # m
half_side = 0.5  # m
chamber_radius = 0.05  # m
nr_steps = 2_000

proton = Proton(velocity=Vector(speed, 0.0, 0.0))
B_0 = Dipole.bending_field(proton.mass, proton.charge, speed, 1 / bending_radius)

# rounded square, travelled clockwise: straight sides joined by quarter circle dipoles
a, R = half_side, bending_radius
points = [
    Vector(-a, a + R, 0.0),
    Vector(a, a + R, 0.0),
    Vector(a + R, a, 0.0),
    Vector(a + R, -a, 0.0),
    Vector(a, -a - R, 0.0),
    Vector(-a, -a - R, 0.0),
    Vector(-a - R, -a, 0.0),
    Vector(-a - R, a, 0.0),
]

ring = Accelerator(options=PropagationOptions(n_cores=4))
for i in range(0, len(points), 2):
    ring.add_element(
        Quadrupole(points[i], points[i + 1], chamber_radius, b=0.0, name=f"side {i}")
    )
    ring.add_element(
        Dipole(
            points[i + 1],
            points[(i + 2) % len(points)],
            chamber_radius,
            1 / bending_radius,
            B_0,
            name=f"arc {i}",
        )
    )
ring.close()
print(ring)

beam = CircularBeam(
    ring, proton, 1e9, lam=1e7, position_spread=1e-3, velocity_spread=1e2
)
beam.activate(rng=np.random.default_rng(0))

dt = ring.length() / speed / 500
emittance = []
for _ in range(10):
    propagate_trajectories(ring, dt, nr_steps // 10)
    beam.update()
    emittance.append((ring.time, beam.radial_emittance(), beam.vertical_emittance()))

for data in ring.element_data():
    print(f"{data.name:>8s}: entered {data.nr_entered}, lost {data.nr_collisions}")
print(beam)

fig, (ax0, ax1) = plt.subplots(1, 2, figsize=(14, 6))
plot_accelerator(ring, ax=ax0)

t, eps_r, eps_v = np.array(emittance).T
ax1.plot(t * 1e6, eps_r, ".-", label="radial")
ax1.plot(t * 1e6, eps_v, ".-", label="vertical")
ax1.set_xlabel("t [μs]")
ax1.set_ylabel("rms emittance [m rad]")
ax1.legend()
plt.show()
