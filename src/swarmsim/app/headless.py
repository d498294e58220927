from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import PRESETS, SimulationConfig
from ..sim.core.simulation import Simulation
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)


_BASIC_HEADER = [
    "tick",
    "population",
    "msd",
    "msd_slope",
    "collisions",
    "order_parameter",
    "neighbor_checks",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "population",
    "msd",
    "msd_slope",
    "diffusion_coefficient",
    "collisions",
    "collisions_this_tick",
    "order_parameter",
    "autocorrelation_lag3",
    "autocorrelation_lag5",
    "is_brownian",
    "decay_time",
    "stalled_moves",
    "neighbor_checks",
    "tick_ms",
    "neighbor_checks_per_agent",
    "avg_speed",
    "tracer_speed",
    "tracer_displacement",
    "occupied_cells",
    "avg_agents_per_cell",
    "max_cell_occupancy",
]


def _format_optional(value: Optional[float]) -> str:
    return "" if value is None else f"{value:.4f}"


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        f"{metrics.msd:.4f}",
        f"{metrics.msd_slope:.6f}",
        metrics.collisions,
        f"{metrics.order_parameter:.4f}",
        metrics.neighbor_checks,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(sim: Simulation, metrics: TickMetrics, tick_ms: float) -> list[object]:
    population = metrics.population
    occupancy = sim.grid.occupancy()
    if population <= 0:
        neighbor_checks_per_agent = 0.0
        avg_speed = 0.0
    else:
        neighbor_checks_per_agent = metrics.neighbor_checks / population
        avg_speed = sum(agent.velocity.length() for agent in sim.agents) / population
    occupied_cells = len(occupancy)
    if occupied_cells > 0:
        avg_agents_per_cell = population / occupied_cells
        max_cell_occupancy = max(occupancy.values())
    else:
        avg_agents_per_cell = 0.0
        max_cell_occupancy = 0

    return [
        metrics.tick,
        population,
        f"{metrics.msd:.4f}",
        f"{metrics.msd_slope:.6f}",
        f"{metrics.diffusion_coefficient:.6f}",
        metrics.collisions,
        metrics.collisions_this_tick,
        f"{metrics.order_parameter:.4f}",
        _format_optional(metrics.autocorrelation_lag3),
        _format_optional(metrics.autocorrelation_lag5),
        int(metrics.is_brownian),
        metrics.decay_time,
        metrics.stalled_moves,
        metrics.neighbor_checks,
        f"{tick_ms:.3f}",
        f"{neighbor_checks_per_agent:.4f}",
        f"{avg_speed:.4f}",
        f"{metrics.tracer_speed:.4f}",
        f"{metrics.tracer_displacement:.4f}",
        occupied_cells,
        f"{avg_agents_per_cell:.4f}",
        max_cell_occupancy,
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def load_run_config(preset: Optional[str], config_path: Optional[Path], seed: Optional[int]) -> SimulationConfig:
    if preset and config_path:
        raise ValueError("Use either --preset or --config, not both")
    if config_path:
        config = SimulationConfig.from_yaml(config_path)
    elif preset:
        config = SimulationConfig.preset(preset)
    else:
        config = SimulationConfig()
    if seed is not None:
        config.seed = seed
    return config


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    preset: Optional[str] = None,
    config_path: Optional[Path] = None,
) -> Simulation:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = load_run_config(preset, config_path, seed)
    sim = Simulation(config)
    logger.info("Running %d headless steps (seed=%d)", steps, config.seed)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    neighbor_checks_series: list[float] = []
    msd_series: list[float] = []
    order_series: list[float] = []
    metrics: Optional[TickMetrics] = None

    try:
        for _ in range(steps):
            metrics = sim.tick()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            if summary_path:
                tick_ms_series.append(tick_ms)
                neighbor_checks_series.append(float(metrics.neighbor_checks))
                msd_series.append(metrics.msd)
                order_series.append(metrics.order_parameter)
            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(sim, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        final = {}
        if metrics is not None:
            final = {
                "msd": metrics.msd,
                "msd_slope": metrics.msd_slope,
                "diffusion_coefficient": metrics.diffusion_coefficient,
                "collisions": metrics.collisions,
                "order_parameter": metrics.order_parameter,
                "is_brownian": metrics.is_brownian,
                "decay_time": metrics.decay_time,
                "stalled_moves": metrics.stalled_moves,
            }
        summary = {
            "steps": steps,
            "seed": sim.config.seed,
            "kind": sim.config.kind.value,
            "dimensions": sim.config.dimensions,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "expected_msd_plateau": sim.expected_msd_plateau,
            "final": final,
            "tick_ms": _summary_stats(tick_ms_series),
            "neighbor_checks": _summary_stats(neighbor_checks_series),
            "msd": _summary_stats(msd_series),
            "order_parameter": _summary_stats(order_series),
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return sim


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Headless swarm simulation")
    parser.add_argument("--preset", choices=sorted(PRESETS), default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        preset=args.preset,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
