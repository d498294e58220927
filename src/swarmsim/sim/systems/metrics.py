from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..core.agent import Agent
from ..types.metrics import TickMetrics

if TYPE_CHECKING:
    from ..core.statistics import StatisticsEngine
    from .motion import StepCounters


def create_metrics(
    tick: int,
    population: int,
    statistics: StatisticsEngine,
    counters: StepCounters,
    total_collisions: int,
    total_stalled: int,
    duration_ms: float,
    tracer: Optional[Agent] = None,
) -> TickMetrics:
    tracer_speed = 0.0
    tracer_displacement = 0.0
    if tracer is not None:
        tracer_speed = tracer.velocity.length()
        tracer_displacement = (tracer.position - tracer.initial_position).length()
    return TickMetrics(
        tick=tick,
        population=population,
        msd=statistics.msd,
        msd_slope=statistics.msd_slope,
        diffusion_coefficient=statistics.diffusion_coefficient,
        collisions=total_collisions,
        collisions_this_tick=counters.collisions,
        order_parameter=statistics.order_parameter,
        autocorrelation_lag3=statistics.correlation_at(3),
        autocorrelation_lag5=statistics.correlation_at(5),
        is_brownian=statistics.is_brownian,
        decay_time=statistics.decay_time,
        stalled_moves=total_stalled,
        neighbor_checks=counters.neighbor_checks,
        tracer_speed=tracer_speed,
        tracer_displacement=tracer_displacement,
        tick_duration_ms=duration_ms,
    )
