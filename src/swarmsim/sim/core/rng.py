from __future__ import annotations

import math
import random

from pygame.math import Vector2, Vector3

from ..utils.vectors import Vector


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_int(self, max_value: int) -> int:
        return self._random.randrange(max_value)

    def next_unit_circle(self) -> Vector2:
        angle = self._random.uniform(0, 2 * math.pi)
        return Vector2(math.cos(angle), math.sin(angle))

    def next_unit_sphere(self) -> Vector3:
        # Inverse-CDF polar angle keeps the density uniform over the sphere.
        theta = math.acos(1.0 - 2.0 * self._random.random())
        phi = self._random.uniform(0, 2 * math.pi)
        sin_theta = math.sin(theta)
        return Vector3(sin_theta * math.cos(phi), sin_theta * math.sin(phi), math.cos(theta))

    def next_unit_vector(self, dimensions: int) -> Vector:
        return self.next_unit_circle() if dimensions == 2 else self.next_unit_sphere()

    def next_in_ball(self, radius: float, dimensions: int) -> Vector:
        # sqrt / cbrt of u gives a uniform density over the disc / ball.
        exponent = 1.0 / dimensions
        distance = radius * self._random.random() ** exponent
        return self.next_unit_vector(dimensions) * distance

    def next_gaussian(self, sigma: float = 1.0) -> float:
        # Box-Muller; 1 - u keeps the log argument away from zero.
        u1 = 1.0 - self._random.random()
        u2 = self._random.random()
        return sigma * math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def next_thermal_velocity(self, temperature: float, mass: float, dimensions: int) -> Vector:
        """Maxwell-Boltzmann velocity: each component ~ N(0, sqrt(T/m))."""
        if temperature <= 0.0 or mass <= 0.0:
            return Vector2() if dimensions == 2 else Vector3()
        sigma = math.sqrt(temperature / mass)
        if dimensions == 2:
            return Vector2(self.next_gaussian(sigma), self.next_gaussian(sigma))
        return Vector3(self.next_gaussian(sigma), self.next_gaussian(sigma), self.next_gaussian(sigma))
