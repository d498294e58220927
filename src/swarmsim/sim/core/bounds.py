from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..utils.vectors import Vector, make_vector


@dataclass(frozen=True, slots=True)
class WorldBounds:
    """Axis-aligned box; one (min, max) pair per axis."""

    minimum: Tuple[float, ...]
    maximum: Tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.minimum) != len(self.maximum):
            raise ValueError("WorldBounds minimum and maximum must have the same dimension")
        for low, high in zip(self.minimum, self.maximum):
            if not high > low:
                raise ValueError(f"WorldBounds axis is empty: [{low}, {high}]")

    @classmethod
    def centered(cls, size: float, dimensions: int) -> "WorldBounds":
        half = size * 0.5
        return cls(minimum=(-half,) * dimensions, maximum=(half,) * dimensions)

    @property
    def dimensions(self) -> int:
        return len(self.minimum)

    def extent(self, axis: int) -> float:
        return self.maximum[axis] - self.minimum[axis]

    @property
    def center(self) -> Vector:
        return make_vector([(low + high) * 0.5 for low, high in zip(self.minimum, self.maximum)])

    def contains(self, position: Vector, margin: float = 0.0) -> bool:
        for axis in range(self.dimensions):
            if position[axis] < self.minimum[axis] + margin or position[axis] > self.maximum[axis] - margin:
                return False
        return True

    def minimum_image(self, offset: Vector) -> Vector:
        """Shortest of the direct and wrapped displacement, per axis."""
        result = offset.copy()
        for axis in range(self.dimensions):
            extent = self.extent(axis)
            component = result[axis]
            if component > extent * 0.5:
                result[axis] = component - extent
            elif component < -extent * 0.5:
                result[axis] = component + extent
        return result
