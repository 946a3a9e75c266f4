import math

import numba as nb


@nb.njit(inline="always")
def _axis_distance2(
    rx: float, ry: float, rz: float, ux: float, uy: float, uz: float
) -> float:
    """Squared distance of r to the line through the origin along the unit vector u."""
    proj = rx * ux + ry * uy + rz * uz
    dx = rx - proj * ux
    dy = ry - proj * uy
    dz = rz - proj * uz
    return dx * dx + dy * dy + dz * dz


@nb.njit(inline="always")
def _torus_distance2(rx: float, ry: float, rz: float, arc_radius: float) -> float:
    """
    Squared distance of r, relative to the arc center, to the circle of radius
    `arc_radius` in the z = 0 plane.
    """
    rho = math.sqrt(rx * rx + ry * ry)
    return (rho - arc_radius) ** 2 + rz * rz
