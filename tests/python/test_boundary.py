from __future__ import annotations

import pytest
from pygame.math import Vector2, Vector3

from swarmsim.sim.core.bounds import WorldBounds
from swarmsim.sim.core.config import BoundaryMode
from swarmsim.sim.systems.boundary import apply_boundary, clamp, reflect, wrap

BOUNDS = WorldBounds.centered(10.0, 2)


def test_reflect_leaves_inside_positions_untouched():
    position = Vector2(1.5, -4.0)
    velocity = Vector2(0.3, -0.7)
    new_position, new_velocity = reflect(position, velocity, BOUNDS)
    assert new_position == position
    assert new_velocity == velocity


def test_reflect_mirrors_overshoot_and_flips_velocity():
    new_position, new_velocity = reflect(Vector2(6.5, 0.0), Vector2(1.0, 2.0), BOUNDS)
    assert new_position.x == pytest.approx(3.5)
    assert new_velocity == Vector2(-1.0, 2.0)

    new_position, new_velocity = reflect(Vector2(-7.0, 1.0), Vector2(-0.5, 0.0), BOUNDS)
    assert new_position.x == pytest.approx(-3.0)
    assert new_velocity.x == pytest.approx(0.5)


def test_reflect_conserves_speed_and_respects_margin():
    velocity = Vector2(3.0, -4.0)
    new_position, new_velocity = reflect(Vector2(4.5, -5.5), velocity, BOUNDS, margin=1.0)
    assert new_position.x == pytest.approx(3.5)
    assert new_position.y == pytest.approx(-2.5)
    assert new_velocity.length() == pytest.approx(velocity.length())


def test_reflect_does_not_mutate_inputs_and_handles_3d():
    bounds = WorldBounds.centered(4.0, 3)
    position = Vector3(0.0, 2.5, -1.0)
    velocity = Vector3(0.0, 1.0, 0.0)
    new_position, new_velocity = reflect(position, velocity, bounds)
    assert new_position == Vector3(0.0, 1.5, -1.0)
    assert new_velocity == Vector3(0.0, -1.0, 0.0)
    assert position == Vector3(0.0, 2.5, -1.0)
    assert velocity == Vector3(0.0, 1.0, 0.0)


def test_wrap_is_toroidal_and_keeps_velocity():
    velocity = Vector2(2.0, -1.0)
    new_position, new_velocity = wrap(Vector2(5.5, -6.0), velocity, BOUNDS)
    assert new_position.x == pytest.approx(-4.5)
    assert new_position.y == pytest.approx(4.0)
    assert new_velocity == velocity

    edge, _ = wrap(Vector2(5.0, 0.0), velocity, BOUNDS)
    assert edge.x == pytest.approx(-5.0)


def test_clamp_pushes_velocity_inward_with_damping():
    new_position, new_velocity = clamp(Vector2(6.0, 0.0), Vector2(2.0, 1.0), BOUNDS, margin=1.0, damping=0.98)
    assert new_position == Vector2(4.0, 0.0)
    assert new_velocity.x == pytest.approx(-1.96)
    assert new_velocity.y == pytest.approx(1.0)

    new_position, new_velocity = clamp(Vector2(0.0, -9.0), Vector2(0.0, -3.0), BOUNDS, margin=1.0, damping=0.5)
    assert new_position == Vector2(0.0, -4.0)
    assert new_velocity.y == pytest.approx(1.5)


def test_apply_boundary_dispatches_and_rejects_unknown_modes():
    position = Vector2(6.5, 0.0)
    velocity = Vector2(1.0, 0.0)
    reflected, _ = apply_boundary(BoundaryMode.REFLECTIVE, position, velocity, BOUNDS)
    wrapped, _ = apply_boundary(BoundaryMode.PERIODIC, position, velocity, BOUNDS)
    clamped, _ = apply_boundary(BoundaryMode.CLAMPED, position, velocity, BOUNDS)
    assert reflected.x == pytest.approx(3.5)
    assert wrapped.x == pytest.approx(-3.5)
    assert clamped.x == pytest.approx(5.0)

    with pytest.raises(ValueError):
        apply_boundary("sideways", position, velocity, BOUNDS)
