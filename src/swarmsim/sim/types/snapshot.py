from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    agents: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotWorld:
    size: float
    dimensions: int
    minimum: Tuple[float, ...]
    maximum: Tuple[float, ...]
    boundary: str


@dataclass(slots=True)
class SnapshotMetadata:
    kind: str
    seed: int
    config_version: str
    expected_msd_plateau: float
