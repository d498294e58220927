from __future__ import annotations

import math
from typing import Tuple

from ..core.bounds import WorldBounds
from ..core.config import BoundaryMode
from ..utils.vectors import Vector

DEFAULT_DAMPING = 0.98


def reflect(position: Vector, velocity: Vector, bounds: WorldBounds, margin: float = 0.0) -> Tuple[Vector, Vector]:
    """
    Mirror coordinates that left ``[min + margin, max - margin]`` back inside.

    A crossing at distance ``d`` lands at distance ``d`` inside and flips that velocity
    component, so speed is conserved exactly. Overshoots longer than the box fold back
    as many times as needed; the velocity flips once per fold.
    """

    new_position = position.copy()
    new_velocity = velocity.copy()
    for axis in range(bounds.dimensions):
        low = bounds.minimum[axis] + margin
        high = bounds.maximum[axis] - margin
        value = new_position[axis]
        if low <= value <= high:
            continue
        extent = high - low
        if extent <= 0.0:
            new_position[axis] = (low + high) * 0.5
            new_velocity[axis] = -new_velocity[axis]
            continue
        folds = math.floor((value - low) / extent)
        offset = (value - low) % (2.0 * extent)
        if offset > extent:
            offset = 2.0 * extent - offset
        new_position[axis] = low + offset
        if folds % 2:
            new_velocity[axis] = -new_velocity[axis]
    return new_position, new_velocity


def wrap(position: Vector, velocity: Vector, bounds: WorldBounds) -> Tuple[Vector, Vector]:
    """Toroidal wrap into ``[min, max)``; velocity is unaffected."""
    new_position = position.copy()
    for axis in range(bounds.dimensions):
        low = bounds.minimum[axis]
        value = new_position[axis]
        if bounds.minimum[axis] <= value < bounds.maximum[axis]:
            continue
        wrapped = low + (value - low) % bounds.extent(axis)
        if wrapped >= bounds.maximum[axis]:
            wrapped = low
        new_position[axis] = wrapped
    return new_position, velocity.copy()


def clamp(
    position: Vector,
    velocity: Vector,
    bounds: WorldBounds,
    margin: float = 0.0,
    damping: float = DEFAULT_DAMPING,
) -> Tuple[Vector, Vector]:
    """
    Hard-clamp into ``[min + margin, max - margin]``.

    On contact the velocity component is forced to point inward and scaled by
    ``damping`` so a heavy body cannot keep ringing against the wall.
    """

    new_position = position.copy()
    new_velocity = velocity.copy()
    for axis in range(bounds.dimensions):
        low = bounds.minimum[axis] + margin
        high = bounds.maximum[axis] - margin
        if low > high:
            low = high = (low + high) * 0.5
        value = new_position[axis]
        if value < low:
            new_position[axis] = low
            new_velocity[axis] = abs(new_velocity[axis]) * damping
        elif value > high:
            new_position[axis] = high
            new_velocity[axis] = -abs(new_velocity[axis]) * damping
    return new_position, new_velocity


def apply_boundary(
    mode: BoundaryMode,
    position: Vector,
    velocity: Vector,
    bounds: WorldBounds,
    margin: float = 0.0,
    damping: float = DEFAULT_DAMPING,
) -> Tuple[Vector, Vector]:
    if mode == BoundaryMode.REFLECTIVE:
        return reflect(position, velocity, bounds, margin)
    if mode == BoundaryMode.PERIODIC:
        return wrap(position, velocity, bounds)
    if mode == BoundaryMode.CLAMPED:
        return clamp(position, velocity, bounds, margin, damping)
    raise ValueError(f"Unknown boundary mode: {mode}")
