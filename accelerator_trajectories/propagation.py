import logging
from typing import List, Tuple

from .accelerator import Accelerator
from .data_structures import ElementData, Trajectories

__all__: List[str] = ["propagate_trajectories"]

LOGGER = logging.getLogger(__name__)


def propagate_trajectories(
    accelerator: Accelerator,
    dt: float,
    nr_steps: int,
    save_trajectories: bool = False,
) -> Tuple[List[ElementData], Trajectories]:
    """
    Propagate the particles of an accelerator for a number of timesteps

    Args:
        accelerator (Accelerator): accelerator holding the particles
        dt (float): timestep [s]
        nr_steps (int): number of timesteps
        save_trajectories (bool, optional): record time, position and velocity of
                                            every live particle after each step.
                                            Defaults to False.

    Returns:
        Tuple[List[ElementData], Trajectories]: return a list with the data per element
                                                stored as ElementData and the recorded
                                                trajectories, keyed by particle handle
    """
    trajectories = Trajectories()

    if save_trajectories:
        for handle, particle, _ in accelerator.residents():
            trajectories.add_data(
                handle, accelerator.time, particle.position, particle.velocity
            )

    for _ in range(nr_steps):
        accelerator.evolve(dt)
        if save_trajectories:
            for handle, particle, _ in accelerator.residents():
                trajectories.add_data(
                    handle, accelerator.time, particle.position, particle.velocity
                )

    LOGGER.info(
        "Propagated %d steps of %g s: %d alive, %d lost, %d exited",
        nr_steps,
        dt,
        accelerator.nr_particles,
        accelerator.nr_lost,
        accelerator.nr_exited,
    )
    return accelerator.element_data(), trajectories
