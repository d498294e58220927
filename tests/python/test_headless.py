import csv
import json

import pytest

from swarmsim.app.headless import load_run_config, main, run_headless


def _read_csv(path):
    with path.open(newline="") as handle:
        return list(csv.reader(handle))


def test_headless_basic_log_header(tmp_path):
    log_path = tmp_path / "basic.csv"
    run_headless(steps=2, seed=1, log_path=log_path, deterministic_log=True, log_format="basic", preset="flocking_2d")
    rows = _read_csv(log_path)
    assert len(rows) == 3
    assert rows[0] == [
        "tick",
        "population",
        "msd",
        "msd_slope",
        "collisions",
        "order_parameter",
        "neighbor_checks",
        "tick_ms",
    ]
    assert rows[1][0] == "0"
    assert rows[2][0] == "1"


def test_headless_detailed_log_header_and_ratios(tmp_path):
    log_path = tmp_path / "detailed.csv"
    run_headless(steps=3, seed=2, log_path=log_path, deterministic_log=True, log_format="detailed", preset="elastic_2d")
    rows = _read_csv(log_path)
    assert len(rows) == 4
    header = rows[0]
    assert header == [
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

    first_row = rows[1]
    idx = {name: i for i, name in enumerate(header)}
    population = int(first_row[idx["population"]])
    neighbor_checks = int(first_row[idx["neighbor_checks"]])
    occupied_cells = int(first_row[idx["occupied_cells"]])
    tick_ms = float(first_row[idx["tick_ms"]])

    neighbor_checks_per_agent = float(first_row[idx["neighbor_checks_per_agent"]])
    avg_agents_per_cell = float(first_row[idx["avg_agents_per_cell"]])

    expected_neighbors = 0.0 if population == 0 else neighbor_checks / population
    expected_per_cell = 0.0 if occupied_cells == 0 else population / occupied_cells

    assert population == 1201
    assert neighbor_checks_per_agent == pytest.approx(expected_neighbors, abs=1e-4)
    assert avg_agents_per_cell == pytest.approx(expected_per_cell, abs=1e-4)
    assert int(first_row[idx["max_cell_occupancy"]]) >= 1
    # Too few velocity samples for an autocorrelation curve yet.
    assert first_row[idx["autocorrelation_lag3"]] == ""
    assert first_row[idx["is_brownian"]] == "0"
    assert tick_ms == 0.0


def test_deterministic_logs_match_for_identical_seeds(tmp_path):
    first = tmp_path / "a.csv"
    second = tmp_path / "b.csv"
    for path in (first, second):
        run_headless(steps=5, seed=11, log_path=path, deterministic_log=True, preset="flocking_3d")
    assert first.read_text() == second.read_text()


def test_headless_summary_output(tmp_path):
    log_path = tmp_path / "summary.csv"
    summary_path = tmp_path / "summary.json"
    run_headless(
        steps=4,
        seed=3,
        log_path=log_path,
        deterministic_log=True,
        log_format="basic",
        summary_path=summary_path,
        preset="diffusion_2d",
    )
    payload = json.loads(summary_path.read_text())
    assert payload["steps"] == 4
    assert payload["seed"] == 3
    assert payload["kind"] == "diffusion"
    assert payload["log_format"] == "basic"
    assert payload["expected_msd_plateau"] == pytest.approx(200.0 * 200.0 / 3.0)
    assert payload["tick_ms"]["max"] == 0.0
    assert "neighbor_checks" in payload
    assert "order_parameter" in payload
    assert set(payload["msd"]) == {"min", "max", "avg", "p50", "p90", "p99"}
    assert payload["final"]["stalled_moves"] >= 0


def test_headless_rejects_unknown_log_format(tmp_path):
    with pytest.raises(ValueError):
        run_headless(steps=1, seed=1, log_path=tmp_path / "x.csv", log_format="verbose")


def test_preset_and_config_file_are_exclusive(tmp_path):
    config_path = tmp_path / "run.yaml"
    config_path.write_text("kind: flocking\n")
    with pytest.raises(ValueError):
        load_run_config("flocking_2d", config_path, None)
    assert load_run_config(None, config_path, 77).seed == 77


def test_main_parses_arguments(tmp_path):
    config_path = tmp_path / "run.yaml"
    config_path.write_text("kind: flocking\ndimensions: 3\nflocking:\n  agent_count: 12\n")
    summary_path = tmp_path / "summary.json"
    main(["--config", str(config_path), "--steps", "3", "--seed", "5", "--summary", str(summary_path)])
    payload = json.loads(summary_path.read_text())
    assert payload["kind"] == "flocking"
    assert payload["dimensions"] == 3
    assert payload["seed"] == 5
    assert payload["final"]["order_parameter"] <= 1.0
