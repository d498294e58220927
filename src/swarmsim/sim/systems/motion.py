from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, List

from ..core.agent import Agent, AgentKind
from ..core.config import SimulationKind
from ..utils.vectors import Vector, _safe_normalize
from . import steering
from .boundary import apply_boundary
from .collisions import bounce_position, find_first_collision, resolve_elastic_collision

if TYPE_CHECKING:
    from ..core.simulation import Simulation


@dataclass(slots=True)
class StepCounters:
    collisions: int = 0
    stalled_moves: int = 0
    neighbor_checks: int = 0


def advance(sim: Simulation, tick: int) -> StepCounters:
    counters = StepCounters()
    kind = sim._config.kind
    if kind == SimulationKind.DIFFUSION:
        for agent in sim._agents:
            random_walk_step(sim, agent, counters)
    elif kind == SimulationKind.ELASTIC:
        elastic_step(sim, tick, counters)
    else:
        flocking_step(sim, counters)
    return counters


def _set_heading_from(agent: Agent, vector: Vector) -> None:
    heading = _safe_normalize(vector)
    if heading.length_squared() > 0.5:
        agent.heading = heading


def random_walk_step(sim: Simulation, agent: Agent, counters: StepCounters) -> bool:
    """
    One fixed-length step in a uniformly random direction, avoiding overlaps.

    A blocked step is replaced by a bounce straight away from the first obstacle
    found. If the bounce is blocked too a new direction is drawn, up to
    ``max_move_attempts`` times; after that the agent stays put for this tick with
    zero velocity and the stall is counted. Returns True when the agent moved.
    """

    config = sim._config
    grid = sim._grid
    rng = sim._rng
    dimensions = config.dimensions
    origin = agent.position

    for _ in range(config.diffusion.max_move_attempts):
        tentative = origin + rng.next_unit_vector(dimensions) * agent.step_size
        candidates = grid.neighbors(tentative)
        counters.neighbor_checks += len(candidates)
        obstacle = find_first_collision(agent, tentative, candidates, grid.displacement)
        if obstacle is not None:
            tentative = bounce_position(origin, grid.displacement(origin, obstacle.position), agent.step_size)
            if tentative is None:
                continue
            candidates = grid.neighbors(tentative)
            counters.neighbor_checks += len(candidates)
            if find_first_collision(agent, tentative, candidates, grid.displacement) is not None:
                continue
        step = tentative - origin
        position, _ = apply_boundary(config.boundary, tentative, step, sim._bounds, agent.radius)
        agent.velocity = grid.displacement(origin, position)
        agent.position = position
        _set_heading_from(agent, agent.velocity)
        grid.move(agent)
        return True

    agent.velocity = agent.velocity * 0.0
    counters.stalled_moves += 1
    return False


def _thermalize(sim: Simulation, agent: Agent) -> None:
    elastic = sim._config.elastic
    rng = sim._rng
    if elastic.rethermalize_probability > 0.0 and rng.next_float() < elastic.rethermalize_probability:
        fresh = rng.next_thermal_velocity(elastic.temperature, agent.mass, agent.dimensions)
        mix = elastic.rethermalize_mix
        agent.velocity = agent.velocity * (1.0 - mix) + fresh * mix
    if elastic.thermal_noise > 0.0 and elastic.temperature > 0.0:
        amplitude = elastic.thermal_noise * math.sqrt(elastic.temperature)
        for axis in range(agent.dimensions):
            agent.velocity[axis] += rng.next_range(-0.5, 0.5) * amplitude


def _confine(sim: Simulation, agent: Agent) -> None:
    config = sim._config
    elastic = config.elastic
    if agent.kind == AgentKind.TRACER:
        mode = elastic.tracer_boundary
    else:
        mode = config.boundary
    agent.position, agent.velocity = apply_boundary(
        mode, agent.position, agent.velocity, sim._bounds, agent.radius, elastic.boundary_damping
    )


def elastic_step(sim: Simulation, tick: int, counters: StepCounters) -> None:
    """
    Ballistic tracer-in-bath update.

    Bath particles are nudged toward the bath temperature, everything moves one tick
    along its velocity and is confined, then tracer-bath (and optionally bath-bath)
    contacts found through the grid are resolved as elastic collisions.
    """

    config = sim._config
    elastic = config.elastic
    grid = sim._grid
    agents = sim._agents
    if not agents:
        return
    tracer = agents[0]

    for agent in agents:
        if agent.kind == AgentKind.BATH:
            _thermalize(sim, agent)
        agent.position = agent.position + agent.velocity
        _confine(sim, agent)
        grid.move(agent)

    collided: List[Agent] = []
    neighbors = sim._neighbor_agents
    offsets = sim._neighbor_offsets
    grid.collect_neighbors(
        tracer.position, tracer.radius + elastic.bath_radius, neighbors, offsets, exclude_id=tracer.id
    )
    counters.neighbor_checks += len(neighbors)
    # Copy: the buffers are reused by the bath-bath pass below.
    for bath in list(neighbors):
        offset = grid.displacement(bath.position, tracer.position)
        if resolve_elastic_collision(
            bath, tracer, tick, elastic.min_collision_interval, elastic.collision_buffer, offset
        ):
            counters.collisions += 1
            collided.append(bath)
            collided.append(tracer)
            grid.move(bath)
            grid.move(tracer)

    if elastic.bath_collisions:
        contact = elastic.bath_radius * 2.0
        for agent in agents:
            if agent.kind != AgentKind.BATH:
                continue
            grid.collect_neighbors(agent.position, contact, neighbors, offsets, exclude_id=agent.id)
            counters.neighbor_checks += len(neighbors)
            for other in list(neighbors):
                if other.kind != AgentKind.BATH or other.id < agent.id:
                    continue
                offset = grid.displacement(agent.position, other.position)
                if resolve_elastic_collision(
                    agent, other, tick, elastic.min_collision_interval, elastic.collision_buffer, offset
                ):
                    counters.collisions += 1
                    collided.append(agent)
                    collided.append(other)
                    grid.move(agent)
                    grid.move(other)

    for agent in collided:
        _confine(sim, agent)
        grid.move(agent)

    cap_tracer_speed(sim, tracer)
    for agent in agents:
        _set_heading_from(agent, agent.velocity)


def cap_tracer_speed(sim: Simulation, tracer: Agent) -> None:
    elastic = sim._config.elastic
    if elastic.tracer_speed_cap_factor <= 0.0 or elastic.temperature <= 0.0:
        return
    limit = elastic.tracer_speed_cap_factor * math.sqrt(2.0 * elastic.temperature / tracer.mass)
    speed = tracer.velocity.length()
    if speed > limit:
        tracer.velocity = tracer.velocity * (limit / speed)


def flocking_step(sim: Simulation, counters: StepCounters) -> None:
    """
    Vicsek update: every new heading is computed before any is applied.

    Each agent then advances ``speed`` along its new heading and is confined; a wall
    contact that changes the velocity also turns the heading.
    """

    config = sim._config
    grid = sim._grid
    agents = sim._agents
    radius = steering.query_radius(sim)
    neighbors = sim._neighbor_agents
    offsets = sim._neighbor_offsets
    dist_sq = sim._neighbor_dist_sq

    headings: List[Vector] = []
    for agent in agents:
        grid.collect_neighbors(agent.position, radius, neighbors, offsets, exclude_id=agent.id, out_dist_sq=dist_sq)
        counters.neighbor_checks += len(neighbors)
        headings.append(steering.compute_heading(sim, agent, neighbors, offsets, dist_sq))

    for agent, heading in zip(agents, headings):
        agent.heading = heading
        velocity = heading * agent.speed
        agent.position, agent.velocity = apply_boundary(
            config.boundary, agent.position + velocity, velocity, sim._bounds, 0.0, 1.0
        )
        _set_heading_from(agent, agent.velocity)
        grid.move(agent)
