from typing import List, Optional

import numpy as np
import numpy.typing as npt

__all__: List[str] = ["generate_random_transverse_normal"]


def generate_random_transverse_normal(
    sigma: float,
    number: int,
    *,
    radial: float = 0,
    vertical: float = 0,
    rng: Optional[np.random.Generator] = None,
) -> npt.NDArray[np.float64]:
    """
    Generate normally distributed samples in the transverse (radial, vertical) plane
    of the local frame of an element. Used for both position offsets and velocity
    offsets.

    Args:
        sigma (float): sigma in both transverse directions
        number (int): number of samples
        radial (float, optional): central radial value. Defaults to 0.
        vertical (float, optional): central vertical value. Defaults to 0.
        rng (Optional[np.random.Generator], optional): random number generator. Defaults
                                                        to None.

    Returns:
        npt.NDArray[np.float64]: samples, shape (number, 2)
    """
    if rng is None:
        rng = np.random.default_rng()

    return np.column_stack(
        [
            rng.normal(radial, sigma, number),
            rng.normal(vertical, sigma, number),
        ]
    )
