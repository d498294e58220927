from __future__ import annotations

import copy
import logging
from time import perf_counter
from typing import Any, Dict, List, Optional

from ..systems import metrics as metrics_system
from ..systems import motion, population
from ..systems.analysis import expected_msd_plateau
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.vectors import Vector, _heading_hue
from .agent import Agent, AgentKind
from .bounds import WorldBounds
from .config import BoundaryMode, SimulationConfig, SimulationKind
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid
from .statistics import StatisticsEngine

logger = logging.getLogger(__name__)

_CATEGORY = {
    AgentKind.PARTICLE: "particle",
    AgentKind.TRACER: "large",
    AgentKind.BATH: "small",
    AgentKind.BOID: "boid",
}
_FIXED_HUE = {
    AgentKind.PARTICLE: 220.0,
    AgentKind.TRACER: 0.0,
    AgentKind.BATH: 195.0,
}


class Simulation:
    """
    Owns one agent population and advances it tick by tick.

    The configuration is copied on construction; change it through the ``set_*``
    methods. Changing the population or the world size rebuilds agents, grid and
    statistics from scratch.
    """

    def __init__(self, config: SimulationConfig):
        self._config = copy.deepcopy(config)
        self._config.validate()
        self._rng = DeterministicRng(self._config.seed)
        self._neighbor_agents: List[Agent] = []
        self._neighbor_offsets: List[Vector] = []
        self._neighbor_dist_sq: List[float] = []
        self._agents: List[Agent] = []
        self._metrics: TickMetrics | None = None
        self._bootstrap()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def bounds(self) -> WorldBounds:
        return self._bounds

    @property
    def grid(self) -> SpatialGrid:
        return self._grid

    @property
    def statistics(self) -> StatisticsEngine:
        return self._statistics

    @property
    def tick_count(self) -> int:
        return self._tick

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def tracer(self) -> Optional[Agent]:
        if self._config.kind != SimulationKind.ELASTIC or not self._agents:
            return None
        return self._agents[0]

    @property
    def expected_msd_plateau(self) -> float:
        config = self._config
        return expected_msd_plateau(config.world_size, config.dimensions, config.diffusion.start_strategy)

    def reset(self) -> None:
        self._rng.reset()
        self._bootstrap()

    def tick(self) -> TickMetrics:
        start = perf_counter()
        tick = self._tick
        counters = motion.advance(self, tick)
        self._total_collisions += counters.collisions
        self._total_stalled += counters.stalled_moves

        tracer = self.tracer
        tracked = [tracer] if tracer is not None else self._agents
        tracked_velocity = tracked[0].velocity if tracked else None
        self._statistics.record(tick, tracked, tracked_velocity, [agent.heading for agent in self._agents])

        elapsed_ms = (perf_counter() - start) * 1000.0
        self._metrics = metrics_system.create_metrics(
            tick,
            len(self._agents),
            self._statistics,
            counters,
            self._total_collisions,
            self._total_stalled,
            elapsed_ms,
            tracer,
        )
        if counters.stalled_moves or counters.collisions:
            logger.debug(
                "tick %d: %d collisions, %d stalled moves", tick, counters.collisions, counters.stalled_moves
            )
        self._tick += 1
        return self._metrics

    def run(self, steps: int) -> Optional[TickMetrics]:
        metrics = self._metrics
        for _ in range(steps):
            metrics = self.tick()
        return metrics

    def snapshot(self) -> Snapshot:
        config = self._config
        metrics = self._metrics if self._metrics is not None else self._metrics_from_state()
        return Snapshot(
            tick=self._tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._agents],
            world=SnapshotWorld(
                size=config.world_size,
                dimensions=config.dimensions,
                minimum=self._bounds.minimum,
                maximum=self._bounds.maximum,
                boundary=config.boundary.value,
            ),
            metadata=SnapshotMetadata(
                kind=config.kind.value,
                seed=config.seed,
                config_version=config.config_version,
                expected_msd_plateau=self.expected_msd_plateau,
            ),
        )

    def set_population(self, count: int) -> None:
        """Set the particle / bath / flock size and rebuild."""
        section = {
            SimulationKind.DIFFUSION: ("diffusion", "particle_count"),
            SimulationKind.ELASTIC: ("elastic", "bath_count"),
            SimulationKind.FLOCKING: ("flocking", "agent_count"),
        }[self._config.kind]
        self._rebuild_with(section[0], section[1], count)

    def set_world_size(self, size: float) -> None:
        self._rebuild_with(None, "world_size", size)

    def set_temperature(self, temperature: float) -> None:
        """Change the bath temperature; bath velocities are re-sampled in place."""
        self._update_config("elastic", "temperature", temperature)
        if self._config.kind == SimulationKind.ELASTIC:
            population.resample_bath_velocities(self)

    def set_noise_level(self, noise_level: float) -> None:
        self._update_config("flocking", "noise_level", noise_level)

    def set_interaction_radius(self, radius: float) -> None:
        self._update_config("flocking", "interaction_radius", radius)
        self._rebuild_grid()

    def set_separation_distance(self, distance: float) -> None:
        self._update_config("flocking", "separation_distance", distance)

    def set_separation_strength(self, strength: float) -> None:
        self._update_config("flocking", "separation_strength", strength)

    def set_cohesion_strength(self, strength: float) -> None:
        self._update_config("flocking", "cohesion_strength", strength)

    def set_boundary_mode(self, mode: BoundaryMode | str) -> None:
        self._update_config(None, "boundary", BoundaryMode(mode))
        self._rebuild_grid()

    def _update_config(self, section: Optional[str], name: str, value: Any) -> None:
        # Validate on a copy so a rejected value leaves the running config untouched.
        candidate = copy.deepcopy(self._config)
        target = candidate if section is None else getattr(candidate, section)
        setattr(target, name, value)
        candidate.validate()
        self._config = candidate
        self._statistics.rebind(candidate.statistics)

    def _rebuild_with(self, section: Optional[str], name: str, value: Any) -> None:
        previous = self._config
        self._update_config(section, name, value)
        try:
            self._bootstrap()
        except Exception:
            self._config = previous
            self._statistics.rebind(previous.statistics)
            raise

    def _bootstrap(self) -> None:
        # Everything is built before anything is swapped in, so a failed build
        # leaves the running world as it was.
        config = self._config
        bounds = WorldBounds.centered(config.world_size, config.dimensions)
        grid = self._make_grid(bounds)
        statistics = StatisticsEngine(config.statistics, config.dimensions)
        agents = population.build_population(self, bounds)
        grid.rebuild(agents)

        self._bounds = bounds
        self._grid = grid
        self._statistics = statistics
        self._agents = agents
        self._tick = 0
        self._total_collisions = 0
        self._total_stalled = 0
        self._metrics = None
        logger.info(
            "Simulation ready: kind=%s dimensions=%d world_size=%.1f boundary=%s cell_size=%.3f",
            config.kind.value,
            config.dimensions,
            config.world_size,
            config.boundary.value,
            self._grid.cell_size,
        )

    def _cell_size(self) -> float:
        config = self._config
        if config.kind == SimulationKind.DIFFUSION:
            return config.cell_size_factor * config.diffusion.particle_radius
        if config.kind == SimulationKind.ELASTIC:
            return config.cell_size_factor * config.elastic.bath_radius
        return config.flocking.interaction_radius

    def _make_grid(self, bounds: WorldBounds | None = None) -> SpatialGrid:
        if bounds is None:
            bounds = self._bounds
        wrap = bounds if self._config.boundary == BoundaryMode.PERIODIC else None
        return SpatialGrid(self._cell_size(), self._config.dimensions, wrap)

    def _rebuild_grid(self) -> None:
        self._grid = self._make_grid()
        self._grid.rebuild(self._agents)

    def _agent_snapshot(self, agent: Agent) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": agent.id,
            "kind": agent.kind.value,
            "category": _CATEGORY[agent.kind],
            "x": agent.position[0],
            "y": agent.position[1],
        }
        if agent.dimensions == 3:
            payload["z"] = agent.position[2]
        payload["vx"] = agent.velocity[0]
        payload["vy"] = agent.velocity[1]
        if agent.dimensions == 3:
            payload["vz"] = agent.velocity[2]
        payload["radius"] = agent.radius
        hue = _FIXED_HUE.get(agent.kind)
        payload["hue"] = _heading_hue(agent.heading) if hue is None else hue
        payload["speed"] = agent.velocity.length()
        return payload

    def _metrics_from_state(self) -> TickMetrics:
        return metrics_system.create_metrics(
            self._tick,
            len(self._agents),
            self._statistics,
            motion.StepCounters(),
            self._total_collisions,
            self._total_stalled,
            0.0,
            self.tracer,
        )
