from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    msd: float
    msd_slope: float
    diffusion_coefficient: float
    collisions: int
    collisions_this_tick: int
    order_parameter: float
    autocorrelation_lag3: Optional[float]
    autocorrelation_lag5: Optional[float]
    is_brownian: bool
    decay_time: int
    stalled_moves: int
    neighbor_checks: int
    tracer_speed: float = 0.0
    tracer_displacement: float = 0.0
    tick_duration_ms: float = 0.0
