from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..utils.vectors import Vector


class AgentKind(str, Enum):
    PARTICLE = "particle"
    TRACER = "tracer"
    BATH = "bath"
    BOID = "boid"


@dataclass(slots=True, eq=False)
class Agent:
    id: int
    kind: AgentKind
    position: Vector
    velocity: Vector
    heading: Vector
    initial_position: Vector
    radius: float = 1.0
    mass: float = 1.0
    speed: float = 0.0
    step_size: float = 0.0
    last_collision_tick: int = -1

    @property
    def dimensions(self) -> int:
        return len(self.position)
