from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, List

from ..core.agent import Agent, AgentKind
from ..core.bounds import WorldBounds
from ..core.config import SimulationKind, StartStrategy
from ..utils.vectors import Vector, _safe_normalize, make_vector, zero_vector

if TYPE_CHECKING:
    from ..core.simulation import Simulation

logger = logging.getLogger(__name__)


def build_population(sim: Simulation, bounds: WorldBounds) -> List[Agent]:
    """Fresh agents for the configured variant inside ``bounds``; ``sim`` is only read."""
    kind = sim._config.kind
    if kind == SimulationKind.DIFFUSION:
        agents = create_particles(sim, bounds)
    elif kind == SimulationKind.ELASTIC:
        agents = create_tracer_and_bath(sim, bounds)
    elif kind == SimulationKind.FLOCKING:
        agents = create_flock(sim, bounds)
    else:
        raise ValueError(f"Unknown simulation kind: {kind}")
    logger.info("Built %d %s agents in %dD", len(agents), kind.value, sim._config.dimensions)
    return agents


def _new_agent(
    agent_id: int,
    kind: AgentKind,
    position: Vector,
    velocity: Vector,
    heading: Vector,
    **extra: float,
) -> Agent:
    return Agent(
        id=agent_id,
        kind=kind,
        position=position,
        velocity=velocity,
        heading=heading,
        initial_position=position.copy(),
        **extra,
    )


def _uniform_in_box(sim: Simulation, bounds: WorldBounds, margin: float, fraction: float = 1.0) -> Vector:
    rng = sim._rng
    values = []
    for axis in range(bounds.dimensions):
        center = (bounds.minimum[axis] + bounds.maximum[axis]) * 0.5
        half = max(0.0, bounds.extent(axis) * 0.5 * fraction - margin)
        values.append(center + rng.next_range(-half, half))
    return make_vector(values)


def create_particles(sim: Simulation, bounds: WorldBounds) -> List[Agent]:
    """Random-walk particles, started uniformly in the box or in a ball around the centre."""
    config = sim._config
    diffusion = config.diffusion
    dimensions = config.dimensions
    rng = sim._rng
    radius = diffusion.particle_radius
    half_world = min(bounds.extent(axis) for axis in range(dimensions)) * 0.5
    start_radius = max(0.0, min(diffusion.start_radius, half_world - radius))

    agents: List[Agent] = []
    for agent_id in range(diffusion.particle_count):
        if diffusion.start_strategy == StartStrategy.CENTER:
            position = bounds.center + rng.next_in_ball(start_radius, dimensions)
        else:
            position = _uniform_in_box(sim, bounds, radius)
        agents.append(
            _new_agent(
                agent_id,
                AgentKind.PARTICLE,
                position,
                zero_vector(dimensions),
                rng.next_unit_vector(dimensions),
                radius=radius,
                step_size=diffusion.step_size,
            )
        )
    return agents


def create_tracer_and_bath(sim: Simulation, bounds: WorldBounds) -> List[Agent]:
    """
    Heavy tracer (id 0) at the centre at rest, then the thermal bath.

    Bath particles are rejection-sampled inside ``placement_fill_fraction`` of the box,
    at least ``placement_exclusion_factor * tracer_radius`` from the tracer. When the
    attempts run out the last sample is pushed radially onto the exclusion sphere.
    """

    config = sim._config
    elastic = config.elastic
    dimensions = config.dimensions
    rng = sim._rng
    center = bounds.center

    tracer = _new_agent(
        0,
        AgentKind.TRACER,
        center.copy(),
        zero_vector(dimensions),
        rng.next_unit_vector(dimensions),
        radius=elastic.tracer_radius,
        mass=elastic.tracer_mass,
    )
    tracer.last_collision_tick = -elastic.min_collision_interval
    agents = [tracer]

    exclusion = elastic.tracer_radius * elastic.placement_exclusion_factor
    exclusion_sq = exclusion * exclusion
    forced = 0
    for agent_id in range(1, elastic.bath_count + 1):
        position = _uniform_in_box(sim, bounds, 0.0, elastic.placement_fill_fraction)
        for _ in range(elastic.max_placement_attempts - 1):
            if (position - center).length_squared() >= exclusion_sq:
                break
            position = _uniform_in_box(sim, bounds, 0.0, elastic.placement_fill_fraction)
        else:
            if (position - center).length_squared() < exclusion_sq:
                direction = _safe_normalize(position - center)
                if direction.length_squared() < 0.5:
                    direction = rng.next_unit_vector(dimensions)
                position = center + direction * exclusion
                forced += 1
        velocity = rng.next_thermal_velocity(elastic.temperature, elastic.bath_mass, dimensions)
        bath = _new_agent(
            agent_id,
            AgentKind.BATH,
            position,
            velocity,
            _safe_normalize(velocity) if velocity.length_squared() > 0.0 else rng.next_unit_vector(dimensions),
            radius=elastic.bath_radius,
            mass=elastic.bath_mass,
            speed=thermal_speed(elastic.temperature, elastic.bath_mass),
        )
        bath.last_collision_tick = -elastic.min_collision_interval
        agents.append(bath)
    if forced:
        logger.warning("Placed %d bath particles on the exclusion boundary after exhausting attempts", forced)
    return agents


def create_flock(sim: Simulation, bounds: WorldBounds) -> List[Agent]:
    config = sim._config
    flocking = config.flocking
    dimensions = config.dimensions
    rng = sim._rng

    agents: List[Agent] = []
    for agent_id in range(flocking.agent_count):
        position = _uniform_in_box(sim, bounds, 0.0)
        heading = rng.next_unit_vector(dimensions)
        variation = rng.next_range(-flocking.speed_variation, flocking.speed_variation) if flocking.speed_variation else 0.0
        speed = flocking.speed * (1.0 + variation)
        agents.append(
            _new_agent(
                agent_id,
                AgentKind.BOID,
                position,
                heading * speed,
                heading,
                radius=flocking.agent_radius,
                speed=speed,
            )
        )
    return agents


def thermal_speed(temperature: float, mass: float) -> float:
    """RMS speed ``sqrt(2T/m)`` of a 2D Maxwell-Boltzmann gas."""
    if temperature <= 0.0 or mass <= 0.0:
        return 0.0
    return math.sqrt(2.0 * temperature / mass)


def resample_bath_velocities(sim: Simulation) -> None:
    elastic = sim._config.elastic
    dimensions = sim._config.dimensions
    for agent in sim._agents:
        if agent.kind != AgentKind.BATH:
            continue
        agent.velocity = sim._rng.next_thermal_velocity(elastic.temperature, agent.mass, dimensions)
        agent.speed = thermal_speed(elastic.temperature, agent.mass)
    logger.info("Re-sampled bath velocities at temperature %.3f", elastic.temperature)
