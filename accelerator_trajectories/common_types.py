from typing import Any, Callable, Protocol

from .data_structures import Vector

# field as a function of position and simulation time
FieldType = Callable[[Vector, float], Vector]


class Canvas(Protocol):
    """Rendering collaborator; drawable objects hand themselves to `draw`."""

    def draw(self, item: Any) -> Any: ...
