from __future__ import annotations

import math
from typing import TYPE_CHECKING, List, Optional, Sequence

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.bounds import WorldBounds
from ..core.config import BoundaryMode
from ..core.rng import DeterministicRng
from ..utils.vectors import Vector, _safe_normalize, _vector_sum, zero_vector

if TYPE_CHECKING:
    from ..core.simulation import Simulation


def mean_heading(headings: Sequence[Vector], fallback: Vector) -> Vector:
    """
    Direction of the vector sum of unit headings.

    In 2D this is ``atan2(sum sin, sum cos)``; scalar angles are never averaged, so
    headings on either side of the +/-pi seam combine correctly. When the headings
    cancel out ``fallback`` is returned.
    """

    if not headings:
        return fallback.copy()
    if len(fallback) == 2:
        sum_cos = 0.0
        sum_sin = 0.0
        for heading in headings:
            sum_cos += heading[0]
            sum_sin += heading[1]
        if sum_cos * sum_cos + sum_sin * sum_sin < 1e-12:
            return fallback.copy()
        angle = math.atan2(sum_sin, sum_cos)
        return Vector2(math.cos(angle), math.sin(angle))
    total = _vector_sum(headings, len(fallback))
    if total.length_squared() < 1e-12:
        return fallback.copy()
    return total.normalize()


def separation(
    neighbor_offsets: Sequence[Vector],
    neighbor_dist_sq: Sequence[float],
    distance: float,
    strength: float,
    dimensions: int,
) -> Vector:
    """Push away from every neighbour closer than ``distance``, linear in intrusion depth."""
    force = zero_vector(dimensions)
    if distance <= 1e-12 or strength == 0.0:
        return force
    limit_sq = distance * distance
    for offset, dist_sq in zip(neighbor_offsets, neighbor_dist_sq):
        if dist_sq >= limit_sq or dist_sq <= 1e-24:
            continue
        dist = math.sqrt(dist_sq)
        depth = (distance - dist) / distance
        force -= offset * (strength * depth / dist)
    return force


def cohesion(
    neighbor_offsets: Sequence[Vector],
    neighbor_dist_sq: Sequence[float],
    radius: float,
    strength: float,
    dimensions: int,
) -> Vector:
    """Unit pull of magnitude ``strength`` toward the centroid of neighbours within ``radius``."""
    if strength == 0.0:
        return zero_vector(dimensions)
    radius_sq = radius * radius
    centroid = zero_vector(dimensions)
    count = 0
    for offset, dist_sq in zip(neighbor_offsets, neighbor_dist_sq):
        if dist_sq > radius_sq:
            continue
        centroid += offset
        count += 1
    if count == 0:
        return centroid
    return _safe_normalize(centroid / count) * strength


def boundary_avoidance(
    position: Vector,
    bounds: WorldBounds,
    distance: float,
    strength: float,
    jitter: float = 0.0,
    rng: Optional[DeterministicRng] = None,
) -> Vector:
    """
    Inward push from every wall closer than ``distance``.

    The push grows linearly from 0 at ``distance`` to ``strength`` at the wall. With a
    ``jitter`` and an ``rng`` each wall term is scaled by a factor drawn from
    ``[1 - jitter, 1 + jitter]`` so a flock does not turn in lockstep.
    """

    force = zero_vector(bounds.dimensions)
    if distance <= 1e-12 or strength == 0.0:
        return force
    for axis in range(bounds.dimensions):
        to_low = position[axis] - bounds.minimum[axis]
        to_high = bounds.maximum[axis] - position[axis]
        if to_low < distance:
            force[axis] += strength * (distance - to_low) / distance * _jitter_factor(jitter, rng)
        if to_high < distance:
            force[axis] -= strength * (distance - to_high) / distance * _jitter_factor(jitter, rng)
    return force


def _jitter_factor(jitter: float, rng: Optional[DeterministicRng]) -> float:
    if jitter <= 0.0 or rng is None:
        return 1.0
    return 1.0 + rng.next_range(-jitter, jitter)


def compute_heading(
    sim: Simulation,
    agent: Agent,
    neighbors: List[Agent],
    neighbor_offsets: List[Vector],
    neighbor_dist_sq: List[float],
) -> Vector:
    """
    New unit heading for ``agent`` from one consistent read of its neighbourhood.

    ``neighbors`` may extend past the alignment radius (the cohesion radius is larger);
    alignment only uses those within ``interaction_radius``. Falls back to the current
    heading when every term cancels. In 2D the noise turns the result by an angle
    drawn from ``U(-noise_level / 2, noise_level / 2)``; in 3D it is a random unit
    vector scaled by ``noise_level`` and added before normalising.
    """

    config = sim._config
    flocking = config.flocking
    dimensions = config.dimensions
    rng = sim._rng

    radius_sq = flocking.interaction_radius * flocking.interaction_radius
    aligned = [agent.heading]
    for other, dist_sq in zip(neighbors, neighbor_dist_sq):
        if dist_sq <= radius_sq:
            aligned.append(other.heading)
    desired = mean_heading(aligned, agent.heading)

    if config.boundary != BoundaryMode.PERIODIC:
        push = boundary_avoidance(
            agent.position,
            sim._bounds,
            flocking.boundary_avoidance_distance,
            flocking.boundary_avoidance_strength,
            flocking.boundary_avoidance_jitter,
            rng,
        )
        desired += push * flocking.boundary_gain

    desired += (
        separation(
            neighbor_offsets,
            neighbor_dist_sq,
            flocking.separation_distance,
            flocking.separation_strength,
            dimensions,
        )
        * flocking.separation_gain
    )
    desired += cohesion(
        neighbor_offsets,
        neighbor_dist_sq,
        flocking.interaction_radius * flocking.cohesion_radius_factor,
        flocking.cohesion_strength,
        dimensions,
    )

    if flocking.noise_level > 0.0 and dimensions == 3:
        desired += rng.next_unit_vector(dimensions) * flocking.noise_level

    heading = _safe_normalize(desired)
    if heading.length_squared() < 0.5:
        heading = agent.heading.copy()
    if flocking.noise_level > 0.0 and dimensions == 2:
        half = 0.5 * flocking.noise_level
        heading = heading.rotate_rad(rng.next_range(-half, half))
    return heading


def query_radius(sim: Simulation) -> float:
    flocking = sim._config.flocking
    radius = max(flocking.interaction_radius, flocking.separation_distance)
    if flocking.cohesion_strength != 0.0:
        radius = max(radius, flocking.interaction_radius * flocking.cohesion_radius_factor)
    return radius
