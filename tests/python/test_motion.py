from __future__ import annotations

import math

import pytest
from pygame.math import Vector2, Vector3

from swarmsim.sim.core.agent import AgentKind
from swarmsim.sim.core.config import (
    BoundaryMode,
    DiffusionConfig,
    ElasticConfig,
    SimulationConfig,
    SimulationKind,
    StartStrategy,
)
from swarmsim.sim.core.simulation import Simulation
from swarmsim.sim.systems.motion import cap_tracer_speed


def _diffusion(count: int, **overrides) -> SimulationConfig:
    diffusion = DiffusionConfig(particle_count=count, **overrides)
    return SimulationConfig(kind=SimulationKind.DIFFUSION, world_size=60.0, seed=9, diffusion=diffusion)


def _elastic(bath_count: int = 150, **overrides) -> SimulationConfig:
    elastic = ElasticConfig(bath_count=bath_count, **overrides)
    return SimulationConfig(kind=SimulationKind.ELASTIC, world_size=100.0, seed=13, elastic=elastic)


def _assert_grid_matches_positions(sim: Simulation) -> None:
    assert len(sim.grid) == len(sim.agents)
    for agent in sim.agents:
        assert sim.grid._agent_keys[agent.id] == sim.grid.cell_key(agent.position)


def test_overcrowded_particles_stay_put():
    sim = Simulation(_diffusion(2, step_size=0.5))
    for agent in sim.agents:
        agent.position = Vector2(0.0, 0.0)
    sim.grid.rebuild(sim.agents)

    metrics = sim.tick()

    assert metrics.stalled_moves == 2
    for agent in sim.agents:
        assert agent.position == Vector2(0.0, 0.0)
        assert agent.velocity.length() == 0.0


def test_free_walker_moves_exactly_one_step():
    sim = Simulation(_diffusion(1, step_size=4.0))
    walker = sim.agents[0]
    walker.position = Vector2(0.0, 0.0)
    sim.grid.rebuild(sim.agents)

    metrics = sim.tick()

    assert metrics.stalled_moves == 0
    assert walker.position.length() == pytest.approx(4.0)
    assert walker.velocity.length() == pytest.approx(4.0)
    assert walker.heading.length() == pytest.approx(1.0)


def test_walkers_stay_in_bounds_and_grid_tracks_them():
    sim = Simulation(_diffusion(150, step_size=1.0))
    for _ in range(30):
        sim.tick()
        _assert_grid_matches_positions(sim)

    for agent in sim.agents:
        assert sim.bounds.contains(agent.position, agent.radius - 1e-9)
        # A wall bounce can only shorten the step.
        assert agent.velocity.length() <= 1.0 + 1e-9


def test_periodic_walkers_stay_inside_the_torus():
    config = _diffusion(100, step_size=3.0)
    config.boundary = BoundaryMode.PERIODIC
    config.world_size = 20.0
    sim = Simulation(config)
    for _ in range(40):
        sim.tick()
    _assert_grid_matches_positions(sim)
    for agent in sim.agents:
        for axis in range(2):
            assert sim.bounds.minimum[axis] <= agent.position[axis] < sim.bounds.maximum[axis]


def test_center_start_places_3d_particles_in_the_start_ball():
    config = _diffusion(200, start_strategy=StartStrategy.CENTER, start_radius=5.0)
    config.dimensions = 3
    sim = Simulation(config)
    for agent in sim.agents:
        assert isinstance(agent.position, Vector3)
        assert agent.position.length() <= 5.0 + 1e-9
    sim.run(5)
    _assert_grid_matches_positions(sim)


def test_bath_is_placed_outside_the_tracer_exclusion_zone():
    sim = Simulation(_elastic())
    tracer = sim.tracer
    assert tracer is sim.agents[0]
    assert tracer.kind == AgentKind.TRACER
    assert tracer.position == Vector2(0.0, 0.0)
    assert tracer.velocity.length() == 0.0
    assert tracer.mass == pytest.approx(30.0)

    exclusion = tracer.radius * 3.0
    limit = 100.0 * 0.5 * 0.8
    for bath in sim.agents[1:]:
        assert bath.kind == AgentKind.BATH
        assert (bath.position - tracer.position).length() >= exclusion - 1e-9
        assert abs(bath.position.x) <= limit and abs(bath.position.y) <= limit


def test_tracer_collides_at_most_once_per_tick_and_stays_in_bounds():
    sim = Simulation(_elastic(temperature=2.0))
    total = 0
    for _ in range(300):
        metrics = sim.tick()
        assert metrics.collisions_this_tick <= 1
        total += metrics.collisions_this_tick
        tracer = sim.tracer
        assert sim.bounds.contains(tracer.position, tracer.radius - 1e-9)
        assert tracer.velocity.length() <= 3.0 * math.sqrt(2.0 * 2.0 / 30.0) + 1e-9
    assert metrics.collisions == total
    _assert_grid_matches_positions(sim)


def test_tracer_speed_is_capped():
    sim = Simulation(_elastic(bath_count=10))
    tracer = sim.tracer
    tracer.velocity = Vector2(50.0, 0.0)
    cap_tracer_speed(sim, tracer)
    assert tracer.velocity.length() == pytest.approx(3.0 * math.sqrt(2.0 * 0.5 / 30.0))
    assert tracer.velocity.y == 0.0


def test_set_temperature_resamples_bath_velocities():
    sim = Simulation(_elastic(bath_count=20))
    before = [agent.velocity.copy() for agent in sim.agents[1:]]

    sim.set_temperature(2.0)

    after = [agent.velocity for agent in sim.agents[1:]]
    assert before != after
    assert all(agent.speed == pytest.approx(2.0) for agent in sim.agents[1:])
    assert sim.tracer.velocity.length() == 0.0
    assert sim.config.elastic.temperature == 2.0


def test_collided_agents_are_rebucketed_before_the_bath_pass(monkeypatch):
    sim = Simulation(
        _elastic(bath_count=2, bath_collisions=True, rethermalize_probability=0.0, thermal_noise=0.0)
    )
    tracer, first, second = sim.agents
    tracer.position = Vector2(0.0, 0.0)
    tracer.velocity = Vector2(0.0, 0.0)
    # Moves to x=8.9 and is pushed back across the cell edge at x=9 by the hit.
    first.position = Vector2(9.9, 0.0)
    first.velocity = Vector2(-1.0, 0.0)
    second.position = Vector2(-30.0, 30.0)
    second.velocity = Vector2(0.0, 0.0)
    grid = sim.grid
    grid.rebuild(sim.agents)

    stale = []
    collect = grid.collect_neighbors

    def checked(*args, **kwargs):
        stale.extend(a.id for a in sim.agents if grid._agent_keys[a.id] != grid.cell_key(a.position))
        return collect(*args, **kwargs)

    monkeypatch.setattr(grid, "collect_neighbors", checked)
    metrics = sim.tick()

    assert metrics.collisions_this_tick == 1
    assert stale == []
    _assert_grid_matches_positions(sim)
