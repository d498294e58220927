from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import yaml


class SimulationKind(str, Enum):
    DIFFUSION = "diffusion"
    ELASTIC = "elastic"
    FLOCKING = "flocking"


class BoundaryMode(str, Enum):
    REFLECTIVE = "reflective"
    PERIODIC = "periodic"
    CLAMPED = "clamped"


class StartStrategy(str, Enum):
    RANDOM = "random"
    CENTER = "center"


@dataclass
class DiffusionConfig:
    particle_count: int = 4000
    particle_radius: float = 1.0
    step_size: float = 4.0
    start_strategy: StartStrategy = StartStrategy.RANDOM
    start_radius: float = 25.0
    max_move_attempts: int = 10


@dataclass
class ElasticConfig:
    bath_count: int = 1200
    bath_mass: float = 1.0
    bath_radius: float = 1.5
    temperature: float = 0.5
    tracer_mass: float = 30.0
    tracer_radius: float = 8.0
    collision_buffer: float = 0.2
    min_collision_interval: int = 1
    bath_collisions: bool = False
    placement_fill_fraction: float = 0.8
    placement_exclusion_factor: float = 3.0
    max_placement_attempts: int = 100
    rethermalize_probability: float = 0.08
    rethermalize_mix: float = 0.2
    thermal_noise: float = 0.02
    # Multiple of sqrt(2T/M); 0 disables the cap.
    tracer_speed_cap_factor: float = 3.0
    tracer_boundary: BoundaryMode = BoundaryMode.CLAMPED
    boundary_damping: float = 0.98


@dataclass
class FlockingConfig:
    agent_count: int = 300
    speed: float = 0.03
    speed_variation: float = 0.0
    agent_radius: float = 0.03
    interaction_radius: float = 0.8
    noise_level: float = 0.1
    separation_distance: float = 0.3
    separation_strength: float = 0.6
    separation_gain: float = 0.3
    cohesion_strength: float = 0.0
    cohesion_radius_factor: float = 2.5
    boundary_avoidance_distance: float = 1.5
    boundary_avoidance_strength: float = 0.3
    boundary_avoidance_jitter: float = 0.2
    boundary_gain: float = 0.1


@dataclass
class StatisticsConfig:
    msd_interval: int = 10
    msd_history: int = 20000
    slope_window: int = 200
    min_slope_points: int = 10
    velocity_history: int = 500
    autocorrelation_interval: int = 5
    max_lag: int = 25
    min_autocorrelation_samples: int = 30
    min_velocity_magnitude: float = 1e-6
    brownian_lag: int = 3
    brownian_threshold: float = 0.7
    min_brownian_lags: int = 5
    min_decay_lags: int = 10


@dataclass
class SimulationConfig:
    kind: SimulationKind = SimulationKind.DIFFUSION
    dimensions: int = 2
    world_size: float = 200.0
    boundary: BoundaryMode = BoundaryMode.REFLECTIVE
    # Cell edge as a multiple of the agent radius (collision variants).
    cell_size_factor: float = 2.0
    seed: int = 42
    config_version: str = "v1"
    diffusion: DiffusionConfig = field(default_factory=DiffusionConfig)
    elastic: ElasticConfig = field(default_factory=ElasticConfig)
    flocking: FlockingConfig = field(default_factory=FlockingConfig)
    statistics: StatisticsConfig = field(default_factory=StatisticsConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    @staticmethod
    def preset(name: str) -> "SimulationConfig":
        try:
            raw = PRESETS[name]
        except KeyError:
            raise ValueError(f"Unknown preset: {name} (expected one of {', '.join(sorted(PRESETS))})") from None
        return load_config(raw)

    @property
    def population(self) -> int:
        if self.kind == SimulationKind.DIFFUSION:
            return self.diffusion.particle_count
        if self.kind == SimulationKind.ELASTIC:
            return self.elastic.bath_count + 1
        return self.flocking.agent_count

    def validate(self) -> None:
        _require_int("dimensions", self.dimensions)
        if self.dimensions not in (2, 3):
            raise ValueError(f"dimensions must be 2 or 3, got {self.dimensions}")
        _require_positive("world_size", self.world_size)
        if self.cell_size_factor < 2.0:
            raise ValueError(f"cell_size_factor must be >= 2 to cover the collision distance, got {self.cell_size_factor}")

        diffusion = self.diffusion
        _require_int("diffusion.particle_count", diffusion.particle_count)
        _require_int("diffusion.max_move_attempts", diffusion.max_move_attempts)
        _require_non_negative("diffusion.particle_count", diffusion.particle_count)
        _require_positive("diffusion.particle_radius", diffusion.particle_radius)
        _require_positive("diffusion.step_size", diffusion.step_size)
        _require_positive("diffusion.start_radius", diffusion.start_radius)
        _require_positive("diffusion.max_move_attempts", diffusion.max_move_attempts)

        elastic = self.elastic
        _require_int("elastic.bath_count", elastic.bath_count)
        _require_int("elastic.min_collision_interval", elastic.min_collision_interval)
        _require_int("elastic.max_placement_attempts", elastic.max_placement_attempts)
        _require_non_negative("elastic.bath_count", elastic.bath_count)
        _require_positive("elastic.bath_mass", elastic.bath_mass)
        _require_positive("elastic.bath_radius", elastic.bath_radius)
        _require_positive("elastic.tracer_mass", elastic.tracer_mass)
        _require_positive("elastic.tracer_radius", elastic.tracer_radius)
        _require_non_negative("elastic.temperature", elastic.temperature)
        _require_non_negative("elastic.collision_buffer", elastic.collision_buffer)
        _require_non_negative("elastic.min_collision_interval", elastic.min_collision_interval)
        _require_positive("elastic.max_placement_attempts", elastic.max_placement_attempts)
        if not 0.0 < elastic.placement_fill_fraction <= 1.0:
            raise ValueError("elastic.placement_fill_fraction must be in (0, 1]")
        if not 0.0 <= elastic.rethermalize_probability <= 1.0:
            raise ValueError("elastic.rethermalize_probability must be in [0, 1]")
        if elastic.tracer_boundary == BoundaryMode.PERIODIC:
            raise ValueError("elastic.tracer_boundary cannot be periodic")
        if self.kind == SimulationKind.ELASTIC:
            if elastic.tracer_radius * 2.0 >= self.world_size:
                raise ValueError("elastic.tracer_radius does not fit inside the world")

        flocking = self.flocking
        _require_int("flocking.agent_count", flocking.agent_count)
        _require_non_negative("flocking.agent_count", flocking.agent_count)
        _require_non_negative("flocking.speed", flocking.speed)
        _require_positive("flocking.interaction_radius", flocking.interaction_radius)
        _require_non_negative("flocking.noise_level", flocking.noise_level)
        _require_non_negative("flocking.separation_distance", flocking.separation_distance)
        _require_positive("flocking.cohesion_radius_factor", flocking.cohesion_radius_factor)
        _require_non_negative("flocking.boundary_avoidance_distance", flocking.boundary_avoidance_distance)
        if not 0.0 <= flocking.speed_variation < 1.0:
            raise ValueError("flocking.speed_variation must be in [0, 1)")

        statistics = self.statistics
        for name in (
            "msd_interval",
            "msd_history",
            "slope_window",
            "min_slope_points",
            "velocity_history",
            "autocorrelation_interval",
            "max_lag",
        ):
            _require_int(f"statistics.{name}", getattr(statistics, name))
            _require_positive(f"statistics.{name}", getattr(statistics, name))
        for name in ("min_autocorrelation_samples", "brownian_lag", "min_brownian_lags", "min_decay_lags"):
            _require_int(f"statistics.{name}", getattr(statistics, name))
            _require_non_negative(f"statistics.{name}", getattr(statistics, name))
        if statistics.min_slope_points < 2:
            raise ValueError("statistics.min_slope_points must be at least 2")


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2
    tick_interval: float = 1.0 / 60.0


def _require_int(name: str, value: object) -> None:
    # bool is an int subclass but never a valid count.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _require_positive(name: str, value: float) -> None:
    if not value > 0:
        raise ValueError(f"{name} must be positive, got {value}")


def _require_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def load_config(raw: Dict[str, Any]) -> SimulationConfig:
    diffusion_raw = dict(raw.get("diffusion", {}))
    if "start_strategy" in diffusion_raw:
        diffusion_raw["start_strategy"] = StartStrategy(diffusion_raw["start_strategy"])
    elastic_raw = dict(raw.get("elastic", {}))
    if "tracer_boundary" in elastic_raw:
        elastic_raw["tracer_boundary"] = BoundaryMode(elastic_raw["tracer_boundary"])

    diffusion = DiffusionConfig(**diffusion_raw)
    elastic = ElasticConfig(**elastic_raw)
    flocking = FlockingConfig(**raw.get("flocking", {}))
    statistics = StatisticsConfig(**raw.get("statistics", {}))
    sim_values = {k: v for k, v in raw.items() if k not in {"diffusion", "elastic", "flocking", "statistics"}}
    if "kind" in sim_values:
        sim_values["kind"] = SimulationKind(sim_values["kind"])
    if "boundary" in sim_values:
        sim_values["boundary"] = BoundaryMode(sim_values["boundary"])
    return SimulationConfig(
        diffusion=diffusion,
        elastic=elastic,
        flocking=flocking,
        statistics=statistics,
        **sim_values,
    )


PRESETS: Dict[str, Dict[str, Any]] = {
    "diffusion_2d": {
        "kind": "diffusion",
        "dimensions": 2,
        "world_size": 200.0,
        "boundary": "reflective",
        "diffusion": {"particle_count": 4000, "particle_radius": 1.0, "step_size": 4.0},
    },
    "diffusion_3d": {
        "kind": "diffusion",
        "dimensions": 3,
        "world_size": 100.0,
        "boundary": "reflective",
        "diffusion": {"particle_count": 4000, "particle_radius": 1.0, "step_size": 2.0, "start_radius": 15.0},
    },
    "elastic_2d": {
        "kind": "elastic",
        "dimensions": 2,
        "world_size": 150.0,
        "boundary": "reflective",
        "statistics": {"msd_interval": 2, "autocorrelation_interval": 5},
    },
    "flocking_2d": {
        "kind": "flocking",
        "dimensions": 2,
        "world_size": 24.0,
        "boundary": "clamped",
        "statistics": {"msd_interval": 1},
    },
    "flocking_3d": {
        "kind": "flocking",
        "dimensions": 3,
        "world_size": 24.0,
        "boundary": "clamped",
        "flocking": {
            "speed_variation": 0.15,
            "noise_level": 0.0,
            "separation_distance": 0.5,
            "separation_strength": 0.8,
            "cohesion_strength": 0.2,
            "boundary_avoidance_distance": 3.0,
            "boundary_avoidance_strength": 0.5,
        },
        "statistics": {"msd_interval": 1},
    },
}
