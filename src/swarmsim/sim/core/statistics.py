from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Generic, Iterator, List, Optional, Sequence, Tuple, TypeVar

from ..systems import analysis
from ..utils.vectors import Vector
from .agent import Agent
from .config import StatisticsConfig

T = TypeVar("T")


class RollingHistory(Generic[T]):
    """Bounded (value, tick) buffer; the oldest sample is evicted once ``capacity`` is reached."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._samples: Deque[Tuple[T, int]] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Tuple[T, int]]:
        return iter(self._samples)

    def append(self, value: T, tick: int) -> None:
        self._samples.append((value, tick))

    def values(self) -> List[T]:
        return [value for value, _ in self._samples]

    def latest(self) -> Optional[Tuple[T, int]]:
        if not self._samples:
            return None
        return self._samples[-1]

    def clear(self) -> None:
        self._samples.clear()


class StatisticsEngine:
    """
    Online diagnostics over the tracked agents.

    MSD is sampled every ``msd_interval`` ticks, the tracked velocity every tick, and
    the autocorrelation curve refreshed every ``autocorrelation_interval`` ticks. The
    order parameter is recomputed from scratch on every call to :meth:`record`.
    """

    def __init__(self, config: StatisticsConfig, dimensions: int):
        self._config = config
        self._dimensions = dimensions
        self._msd_history: RollingHistory[float] = RollingHistory(config.msd_history)
        self._velocity_history: RollingHistory[Vector] = RollingHistory(config.velocity_history)
        self._correlations: List[float] = []
        self._msd = 0.0
        self._msd_slope = 0.0
        self._order_parameter = 0.0

    def rebind(self, config: StatisticsConfig) -> None:
        """Follow a replaced configuration; buffer capacities are kept until :meth:`reset`."""
        self._config = config

    def reset(self) -> None:
        self._msd_history.clear()
        self._velocity_history.clear()
        self._correlations = []
        self._msd = 0.0
        self._msd_slope = 0.0
        self._order_parameter = 0.0

    def record(
        self,
        tick: int,
        tracked: Sequence[Agent],
        tracked_velocity: Optional[Vector],
        headings: Sequence[Vector],
        displacement: Optional[Callable[[Vector, Vector], Vector]] = None,
    ) -> None:
        config = self._config
        if tick % config.msd_interval == 0:
            self._msd = analysis.mean_squared_displacement(tracked, displacement)
            self._msd_history.append(self._msd, tick)
            self._msd_slope = analysis.ols_slope(self._msd_history, config.slope_window, config.min_slope_points)

        if tracked_velocity is not None:
            self._velocity_history.append(tracked_velocity.copy(), tick)
        if tick % config.autocorrelation_interval == 0:
            correlations = analysis.velocity_autocorrelation(
                self._velocity_history.values(),
                config.max_lag,
                config.min_autocorrelation_samples,
                config.min_velocity_magnitude,
            )
            if correlations:
                self._correlations = correlations

        self._order_parameter = analysis.order_parameter(headings, self._dimensions)

    @property
    def msd(self) -> float:
        return self._msd

    @property
    def msd_slope(self) -> float:
        return self._msd_slope

    @property
    def diffusion_coefficient(self) -> float:
        return self._msd_slope / (2.0 * self._dimensions)

    @property
    def msd_history(self) -> RollingHistory[float]:
        return self._msd_history

    @property
    def velocity_history(self) -> RollingHistory[Vector]:
        return self._velocity_history

    @property
    def correlations(self) -> List[float]:
        return list(self._correlations)

    @property
    def order_parameter(self) -> float:
        return self._order_parameter

    @property
    def is_brownian(self) -> bool:
        config = self._config
        return analysis.is_brownian(
            self._correlations, config.brownian_lag, config.brownian_threshold, config.min_brownian_lags
        )

    @property
    def decay_time(self) -> int:
        return analysis.decay_time(self._correlations, self._config.min_decay_lags)

    def correlation_at(self, lag: int) -> Optional[float]:
        return analysis.correlation_at(self._correlations, lag)
