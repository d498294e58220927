from __future__ import annotations

from typing import Callable, Iterable, Optional, Tuple

from ..core.agent import Agent
from ..utils.vectors import Vector

Displacement = Callable[[Vector, Vector], Vector]

_MIN_CONTACT_DISTANCE = 1e-12


def _direct_displacement(origin: Vector, target: Vector) -> Vector:
    return target - origin


def find_first_collision(
    agent: Agent,
    tentative: Vector,
    candidates: Iterable[Agent],
    displacement: Displacement = _direct_displacement,
) -> Optional[Agent]:
    """
    First candidate overlapping ``agent`` if it stood at ``tentative``.

    Only the first hit is reported; simultaneous contacts with several neighbours are
    resolved one at a time.
    """

    for other in candidates:
        if other is agent:
            continue
        limit = agent.radius + other.radius
        if displacement(tentative, other.position).length_squared() < limit * limit:
            return other
    return None


def bounce_position(position: Vector, obstacle_offset: Vector, step_size: float) -> Optional[Vector]:
    """
    Step of length ``step_size`` straight away from an obstacle at ``position + obstacle_offset``.

    Returns None when the two centres coincide and no direction is defined.
    """

    distance = obstacle_offset.length()
    if distance <= _MIN_CONTACT_DISTANCE:
        return None
    return position - obstacle_offset * (step_size / distance)


def elastic_normal_velocities(m1: float, m2: float, v1n: float, v2n: float) -> Tuple[float, float]:
    """1-D elastic exchange along the contact normal."""
    total = m1 + m2
    return (
        ((m1 - m2) * v1n + 2.0 * m2 * v2n) / total,
        ((m2 - m1) * v2n + 2.0 * m1 * v1n) / total,
    )


def resolve_elastic_collision(
    first: Agent,
    second: Agent,
    tick: int,
    min_interval: int,
    buffer: float,
    offset: Optional[Vector] = None,
) -> bool:
    """
    Frictionless hard-sphere collision between two overlapping agents.

    Only the normal velocity components change, so momentum and kinetic energy are
    conserved. Afterwards both agents are pushed apart along the normal by
    ``(overlap + buffer) / 2`` each and their cooldown clocks are reset. Returns
    False without touching anything when the pair is apart, coincident, cooling
    down, or already separating.
    """

    if offset is None:
        offset = second.position - first.position
    distance = offset.length()
    min_distance = first.radius + second.radius
    if distance >= min_distance or distance <= _MIN_CONTACT_DISTANCE:
        return False
    if tick - first.last_collision_tick < min_interval or tick - second.last_collision_tick < min_interval:
        return False

    normal = offset / distance
    if (second.velocity - first.velocity).dot(normal) >= 0.0:
        return False

    v1n = first.velocity.dot(normal)
    v2n = second.velocity.dot(normal)
    new_v1n, new_v2n = elastic_normal_velocities(first.mass, second.mass, v1n, v2n)
    first.velocity += normal * (new_v1n - v1n)
    second.velocity += normal * (new_v2n - v2n)

    shift = normal * ((min_distance - distance + buffer) * 0.5)
    first.position -= shift
    second.position += shift

    first.last_collision_tick = tick
    second.last_collision_tick = tick
    return True
