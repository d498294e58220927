import math

import pytest

from swarmsim.sim.core.config import PRESETS, SimulationConfig
from swarmsim.sim.core.simulation import Simulation


@pytest.mark.config_change
@pytest.mark.parametrize("name", sorted(PRESETS))
def test_presets_stay_healthy_over_a_long_run(name):
    sim = Simulation(SimulationConfig.preset(name))
    metrics = sim.run(2000)

    summary = (
        f"msd={metrics.msd:.2f}, slope={metrics.msd_slope:.4f}, "
        f"order={metrics.order_parameter:.3f}, collisions={metrics.collisions}, "
        f"stalled={metrics.stalled_moves}, tick_ms={metrics.tick_duration_ms:.2f}"
    )
    assert math.isfinite(metrics.msd), summary
    assert 0.0 <= metrics.order_parameter <= 1.0, summary
    assert all(sim.bounds.contains(agent.position) for agent in sim.agents), summary
    # A confined walker cannot wander much past the box-averaged plateau.
    assert metrics.msd <= sim.expected_msd_plateau * 3.0, summary
