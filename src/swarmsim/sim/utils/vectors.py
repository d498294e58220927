from __future__ import annotations

import math
from typing import Iterable, Sequence, Union

from pygame.math import Vector2, Vector3

Vector = Union[Vector2, Vector3]


def make_vector(values: Sequence[float]) -> Vector:
    if len(values) == 2:
        return Vector2(values[0], values[1])
    if len(values) == 3:
        return Vector3(values[0], values[1], values[2])
    raise ValueError(f"Unsupported vector dimension: {len(values)}")


def zero_vector(dimensions: int) -> Vector:
    return Vector2() if dimensions == 2 else Vector3()


def _safe_normalize(vector: Vector) -> Vector:
    magnitude_sq = vector.length_squared()
    if magnitude_sq < 1e-10:
        return vector * 0.0
    return vector / math.sqrt(magnitude_sq)


def _vector_sum(vectors: Iterable[Vector], dimensions: int) -> Vector:
    total = zero_vector(dimensions)
    for vector in vectors:
        total += vector
    return total


def _heading_angle(vector: Vector) -> float:
    if vector.length_squared() < 1e-12:
        return 0.0
    return math.atan2(vector[1], vector[0])


def _heading_hue(vector: Vector) -> float:
    return math.degrees(_heading_angle(vector)) % 360.0
