from __future__ import annotations

import pytest
from pygame.math import Vector2

from swarmsim.sim.core.agent import Agent, AgentKind
from swarmsim.sim.systems.collisions import (
    bounce_position,
    elastic_normal_velocities,
    find_first_collision,
    resolve_elastic_collision,
)


def _make_body(agent_id: int, position: Vector2, velocity: Vector2, radius: float = 1.0, mass: float = 1.0) -> Agent:
    return Agent(
        id=agent_id,
        kind=AgentKind.BATH,
        position=position,
        velocity=velocity,
        heading=Vector2(),
        initial_position=position.copy(),
        radius=radius,
        mass=mass,
        last_collision_tick=-10,
    )


def _momentum(*agents: Agent) -> Vector2:
    total = Vector2()
    for agent in agents:
        total += agent.velocity * agent.mass
    return total


def _energy(*agents: Agent) -> float:
    return sum(0.5 * agent.mass * agent.velocity.length_squared() for agent in agents)


def test_equal_masses_swap_velocities_and_separate():
    first = _make_body(0, Vector2(0.0, 0.0), Vector2(1.0, 0.0))
    second = _make_body(1, Vector2(1.5, 0.0), Vector2(-1.0, 0.0))

    assert resolve_elastic_collision(first, second, tick=5, min_interval=1, buffer=0.2) is True

    assert first.velocity.x == pytest.approx(-1.0)
    assert second.velocity.x == pytest.approx(1.0)
    assert first.position.x == pytest.approx(-0.35)
    assert second.position.x == pytest.approx(1.85)
    assert first.position.distance_to(second.position) >= 2.2 - 1e-9
    assert first.last_collision_tick == 5
    assert second.last_collision_tick == 5


def test_unequal_masses_conserve_momentum_and_energy():
    light = _make_body(0, Vector2(0.0, 0.0), Vector2(0.7, 0.3), radius=1.0, mass=1.0)
    heavy = _make_body(1, Vector2(1.2, 0.9), Vector2(-0.05, 0.02), radius=8.0, mass=30.0)
    momentum_before = _momentum(light, heavy)
    energy_before = _energy(light, heavy)

    assert resolve_elastic_collision(light, heavy, tick=0, min_interval=1, buffer=0.0) is True

    momentum_after = _momentum(light, heavy)
    assert momentum_after.x == pytest.approx(momentum_before.x, rel=1e-9, abs=1e-12)
    assert momentum_after.y == pytest.approx(momentum_before.y, rel=1e-9, abs=1e-12)
    assert _energy(light, heavy) == pytest.approx(energy_before, rel=1e-9)


def test_only_normal_components_change():
    first = _make_body(0, Vector2(0.0, 0.0), Vector2(1.0, 0.5))
    second = _make_body(1, Vector2(1.0, 0.0), Vector2(0.0, -0.25))

    resolve_elastic_collision(first, second, tick=0, min_interval=1, buffer=0.0)

    # Normal is the x axis, so every y component survives untouched.
    assert first.velocity.y == pytest.approx(0.5)
    assert second.velocity.y == pytest.approx(-0.25)
    assert first.velocity.x == pytest.approx(0.0)
    assert second.velocity.x == pytest.approx(1.0)


def test_elastic_normal_velocities_match_textbook_formula():
    v1, v2 = elastic_normal_velocities(1.0, 3.0, 2.0, 0.0)
    assert v1 == pytest.approx(-1.0)
    assert v2 == pytest.approx(1.0)


@pytest.mark.parametrize(
    ("second_position", "second_velocity", "tick"),
    [
        (Vector2(1.5, 0.0), Vector2(2.0, 0.0), 5),  # separating
        (Vector2(1.5, 0.0), Vector2(-1.0, 0.0), 0),  # cooling down
        (Vector2(0.0, 0.0), Vector2(-1.0, 0.0), 5),  # coincident centres
        (Vector2(2.5, 0.0), Vector2(-1.0, 0.0), 5),  # not touching
    ],
)
def test_non_colliding_pairs_are_left_alone(second_position, second_velocity, tick):
    first = _make_body(0, Vector2(0.0, 0.0), Vector2(1.0, 0.0))
    first.last_collision_tick = 0
    second = _make_body(1, second_position, second_velocity)

    assert resolve_elastic_collision(first, second, tick=tick, min_interval=2, buffer=0.2) is False
    assert first.velocity == Vector2(1.0, 0.0)
    assert first.position == Vector2(0.0, 0.0)
    assert second.velocity == second_velocity
    assert first.last_collision_tick == 0


def test_explicit_offset_is_used_across_a_periodic_seam():
    first = _make_body(0, Vector2(4.8, 0.0), Vector2(1.0, 0.0))
    second = _make_body(1, Vector2(-4.8, 0.0), Vector2(-1.0, 0.0))

    assert resolve_elastic_collision(first, second, 3, 1, 0.0, offset=Vector2(0.4, 0.0)) is True
    assert first.velocity.x == pytest.approx(-1.0)
    assert second.velocity.x == pytest.approx(1.0)


def test_find_first_collision_reports_a_single_overlap():
    mover = _make_body(0, Vector2(0.0, 0.0), Vector2())
    near = _make_body(1, Vector2(2.5, 0.0), Vector2())
    far = _make_body(2, Vector2(9.0, 0.0), Vector2())

    assert find_first_collision(mover, Vector2(1.0, 0.0), [mover, near, far]) is near
    assert find_first_collision(mover, Vector2(-1.0, 0.0), [mover, near, far]) is None


def test_bounce_position_steps_away_from_the_obstacle():
    bounced = bounce_position(Vector2(1.0, 1.0), Vector2(3.0, 4.0), 2.0)
    assert bounced.x == pytest.approx(1.0 - 1.2)
    assert bounced.y == pytest.approx(1.0 - 1.6)
    assert bounce_position(Vector2(1.0, 1.0), Vector2(), 2.0) is None
