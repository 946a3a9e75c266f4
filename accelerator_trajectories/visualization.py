from functools import singledispatchmethod
from typing import Optional

import matplotlib.axes as axes
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import PatchCollection
from matplotlib.patches import Polygon

from .accelerator import Accelerator
from .beam import Beam
from .beamline_objects import Element
from .particles import Particle

__all__ = ["MatplotlibCanvas", "plot_accelerator"]


class MatplotlibCanvas:
    """
    Top view (x, y) canvas drawing elements, particles, beams and accelerators on a
    matplotlib axes.
    """

    def __init__(
        self,
        ax: Optional[axes.Axes] = None,
        facecolor: str = "C0",
        edgecolor: str = "k",
        alpha: float = 0.5,
        nr_points: int = 50,
    ):
        if ax is None:
            fig, ax = plt.subplots(figsize=(8, 8))
        self.ax = ax
        self.facecolor = facecolor
        self.edgecolor = edgecolor
        self.alpha = alpha
        self.nr_points = nr_points

    @singledispatchmethod
    def draw(self, item):
        raise TypeError(f"Cannot draw object of type {type(item).__name__}")

    @draw.register(Element)
    def _draw_element(self, item: Element):
        s = np.linspace(0, item.path_length(), self.nr_points)
        path = [item.inverse_curvilinear_coord(si) for si in s]
        outer = []
        inner = []
        for point in path:
            e_radial = item.local_frame(point)[0]
            outer.append(point + item.radius * e_radial)
            inner.append(point - item.radius * e_radial)

        outline = [(p.x, p.y) for p in outer] + [(p.x, p.y) for p in inner[::-1]]
        pc = PatchCollection(
            [Polygon(outline, closed=True)],
            facecolor=self.facecolor,
            alpha=self.alpha,
            edgecolor=self.edgecolor,
        )
        self.ax.add_collection(pc)
        self.ax.plot(
            [p.x for p in path], [p.y for p in path], ls="--", lw=1, color="C3"
        )
        return pc

    @draw.register(Particle)
    def _draw_particle(self, item: Particle):
        return self.ax.plot(
            item.position.x,
            item.position.y,
            "o",
            ms=3,
            color=tuple(item.color),
            markeredgecolor=self.edgecolor,
        )

    @draw.register(Beam)
    def _draw_beam(self, item: Beam):
        for particle, _ in item.particles():
            particle.draw(self)

    @draw.register(Accelerator)
    def _draw_accelerator(self, item: Accelerator):
        for element in item.elements:
            element.draw(self)
        item.draw_particles(self)


def plot_accelerator(
    accelerator: Accelerator,
    ax: Optional[axes.Axes] = None,
    facecolor: str = "C0",
    edgecolor: str = "k",
    alpha: float = 0.5,
) -> axes.Axes:
    canvas = MatplotlibCanvas(ax, facecolor=facecolor, edgecolor=edgecolor, alpha=alpha)
    accelerator.draw(canvas)

    ax = canvas.ax
    ax.autoscale_view()
    ax.set_aspect("equal")
    ax.set_xlabel("x [m]")
    ax.set_ylabel("y [m]")

    return ax
