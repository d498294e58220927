from __future__ import annotations

import math
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..core.agent import Agent
from ..core.config import StartStrategy
from ..utils.vectors import Vector, zero_vector

_DECAY_TARGET = 1.0 / math.e


def mean_squared_displacement(
    agents: Sequence[Agent],
    displacement: Optional[Callable[[Vector, Vector], Vector]] = None,
) -> float:
    """Mean of ``|position - initial_position|^2``; 0.0 for an empty population."""
    if not agents:
        return 0.0
    total = 0.0
    for agent in agents:
        if displacement is None:
            offset = agent.position - agent.initial_position
        else:
            offset = displacement(agent.initial_position, agent.position)
        total += offset.length_squared()
    return total / len(agents)


def ols_slope(samples: Sequence[Tuple[float, int]], window: int, min_points: int) -> float:
    """
    Least-squares slope of value over tick for the last ``window`` usable samples.

    Samples that are non-finite or negative are dropped before windowing. Returns 0.0
    when fewer than ``min_points`` remain or all ticks coincide.
    """

    valid = [(value, tick) for value, tick in samples if math.isfinite(value) and value >= 0.0]
    if window > 0:
        valid = valid[-window:]
    count = len(valid)
    if count < min_points or count < 2:
        return 0.0
    mean_t = sum(tick for _, tick in valid) / count
    mean_v = sum(value for value, _ in valid) / count
    numerator = 0.0
    denominator = 0.0
    for value, tick in valid:
        dt = tick - mean_t
        numerator += dt * (value - mean_v)
        denominator += dt * dt
    if denominator <= 0.0:
        return 0.0
    return numerator / denominator


def velocity_autocorrelation(
    velocities: Sequence[Vector],
    max_lag: int,
    min_samples: int = 30,
    min_magnitude: float = 1e-6,
) -> List[float]:
    """
    Directional autocorrelation ``<cos(v(t), v(t + lag))>`` for lags ``0..L``.

    ``L = min(max_lag, n // 4)``. Pairs where either vector is shorter than
    ``min_magnitude`` are skipped; a lag without any usable pair scores 0.0. Below
    ``min_samples`` samples nothing is computed and an empty list is returned.
    """

    count = len(velocities)
    if count < min_samples or count == 0:
        return []
    last_lag = min(max_lag, count // 4)
    magnitudes = [velocity.length() for velocity in velocities]
    correlations: List[float] = []
    for lag in range(last_lag + 1):
        total = 0.0
        pairs = 0
        for index in range(count - lag):
            mag_a = magnitudes[index]
            mag_b = magnitudes[index + lag]
            if mag_a <= min_magnitude or mag_b <= min_magnitude:
                continue
            total += velocities[index].dot(velocities[index + lag]) / (mag_a * mag_b)
            pairs += 1
        correlations.append(total / pairs if pairs else 0.0)
    return correlations


def is_brownian(correlations: Sequence[float], lag: int = 3, threshold: float = 0.7, min_lags: int = 5) -> bool:
    """Heuristic: directional memory has dropped below ``threshold`` by ``lag``."""
    if len(correlations) < min_lags:
        return False
    return correlations[min(lag, len(correlations) - 1)] < threshold


def decay_time(correlations: Sequence[float], min_lags: int = 10) -> int:
    """First lag >= 1 at which the correlation reaches 1/e."""
    if len(correlations) < min_lags:
        return 0
    for lag in range(1, len(correlations)):
        if correlations[lag] <= _DECAY_TARGET:
            return lag
    return len(correlations)


def correlation_at(correlations: Sequence[float], lag: int) -> Optional[float]:
    if lag < len(correlations):
        return correlations[lag]
    return None


def order_parameter(headings: Iterable[Vector], dimensions: int) -> float:
    """``|mean of unit headings|``; 0.0 for no agents. Zero headings count as zero vectors."""
    total = zero_vector(dimensions)
    count = 0
    for heading in headings:
        magnitude_sq = heading.length_squared()
        if magnitude_sq > 1e-24:
            total += heading / math.sqrt(magnitude_sq)
        count += 1
    if count == 0:
        return 0.0
    return min(1.0, total.length() / count)


def expected_msd_plateau(world_size: float, dimensions: int, strategy: StartStrategy) -> float:
    """Long-time MSD of a walker confined to a box of edge ``world_size``."""
    square = world_size * world_size
    if dimensions == 2:
        return square / 6.0 if strategy == StartStrategy.CENTER else square / 3.0
    return square / 4.0 if strategy == StartStrategy.CENTER else square / 2.0
