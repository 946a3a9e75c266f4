from dataclasses import dataclass
from typing import List

__all__: List[str] = ["PropagationOptions"]


@dataclass
class PropagationOptions:
    """
    Options for stepping the particles of an accelerator

    Attributes
        n_cores (int): number of joblib threads integrating the particles resident in
                        one element, 1 integrates sequentially
        parallel_threshold (int): minimum number of resident particles for an element
                                    to be integrated in parallel
        verbose (bool): enable verbose logging of joblib
    """

    n_cores: int = 1
    parallel_threshold: int = 64
    verbose: bool = False
