from __future__ import annotations

import itertools
import math
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from ..utils.vectors import Vector
from .bounds import WorldBounds

if TYPE_CHECKING:
    from .agent import Agent

CellKey = Tuple[int, ...]


class SpatialGrid:
    """
    Uniform hash grid mapping integer cell coordinates to the agents inside them.

    Every inserted agent lives in exactly one cell, ``floor(position / cell_size)``
    per axis. When ``wrap`` bounds are given the grid is toroidal: cell indices are
    taken relative to the lower corner modulo the number of cells, and the cell edge
    is stretched so that the world holds a whole number of cells.
    """

    def __init__(self, cell_size: float, dimensions: int = 2, wrap: Optional[WorldBounds] = None) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._dimensions = dimensions
        self._wrap = wrap
        if wrap is not None:
            counts = [max(1, int(wrap.extent(axis) // cell_size)) for axis in range(dimensions)]
            self._cell_counts: Optional[Tuple[int, ...]] = tuple(counts)
            self._cell_sizes = tuple(wrap.extent(axis) / counts[axis] for axis in range(dimensions))
            self._origin = tuple(wrap.minimum)
        else:
            self._cell_counts = None
            self._cell_sizes = (cell_size,) * dimensions
            self._origin = (0.0,) * dimensions
        self._cells: Dict[CellKey, List["Agent"]] = {}
        self._agent_keys: Dict[int, CellKey] = {}
        self._offset_cache: Dict[int, List[CellKey]] = {}

    @property
    def cell_size(self) -> float:
        return min(self._cell_sizes)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def __len__(self) -> int:
        return len(self._agent_keys)

    def __contains__(self, agent: "Agent") -> bool:
        return agent.id in self._agent_keys

    def build_neighbor_cell_offsets(self, radius: float) -> List[CellKey]:
        cell_range = max(1, int(math.ceil(radius / self.cell_size)))
        cached = self._offset_cache.get(cell_range)
        if cached is None:
            span = range(-cell_range, cell_range + 1)
            cached = list(itertools.product(span, repeat=self._dimensions))
            self._offset_cache[cell_range] = cached
        return cached

    def clear(self) -> None:
        self._cells.clear()
        self._agent_keys.clear()

    def rebuild(self, agents: List["Agent"]) -> None:
        self.clear()
        for agent in agents:
            self.insert(agent)

    def insert(self, agent: "Agent") -> None:
        key = self.cell_key(agent.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
        bucket.append(agent)
        self._agent_keys[agent.id] = key

    def remove(self, agent: "Agent") -> None:
        key = self._agent_keys.pop(agent.id, None)
        if key is None:
            return
        bucket = self._cells.get(key)
        if bucket is None:
            return
        bucket.remove(agent)
        if not bucket:
            del self._cells[key]

    def move(self, agent: "Agent") -> bool:
        """Re-bucket ``agent`` after its position changed. Returns True if it changed cell."""
        old_key = self._agent_keys.get(agent.id)
        new_key = self.cell_key(agent.position)
        if old_key == new_key:
            return False
        self.remove(agent)
        self.insert(agent)
        return True

    def neighbors(self, position: Vector, radius: Optional[float] = None) -> List["Agent"]:
        """
        Every agent in the cell block around ``position``.

        Without ``radius`` the block is 3x3 (2D) or 3x3x3 (3D); with a radius the block
        grows until it covers it. No distance filtering is applied.
        """

        found: List["Agent"] = []
        cells = self._cells
        for key in self._block_keys(position, self.cell_size if radius is None else radius):
            bucket = cells.get(key)
            if bucket:
                found.extend(bucket)
        return found

    def collect_neighbors(
        self,
        position: Vector,
        radius: float,
        out_agents: List["Agent"],
        out_offsets: List[Vector],
        exclude_id: int | None = None,
        out_dist_sq: List[float] | None = None,
    ) -> None:
        """
        Fill the provided buffers with agents within ``radius`` and their offsets from ``position``.

        Offsets use the minimum image when the grid wraps.
        Callers must clear/consume the buffers after use.
        """

        out_agents.clear()
        out_offsets.clear()
        if out_dist_sq is not None:
            out_dist_sq.clear()
        radius_sq = radius * radius
        cells = self._cells
        for key in self._block_keys(position, radius):
            bucket = cells.get(key)
            if not bucket:
                continue
            for agent in bucket:
                if exclude_id is not None and agent.id == exclude_id:
                    continue
                offset = self.displacement(position, agent.position)
                dist_sq = offset.length_squared()
                if dist_sq <= radius_sq:
                    out_agents.append(agent)
                    out_offsets.append(offset)
                    if out_dist_sq is not None:
                        out_dist_sq.append(dist_sq)

    def displacement(self, origin: Vector, target: Vector) -> Vector:
        """Vector from ``origin`` to ``target``; shortest image when wrapping."""
        offset = target - origin
        if self._wrap is not None:
            return self._wrap.minimum_image(offset)
        return offset

    def occupancy(self) -> Dict[CellKey, int]:
        return {key: len(bucket) for key, bucket in self._cells.items() if bucket}

    def cell_key(self, position: Vector) -> CellKey:
        key = tuple(
            int((position[axis] - self._origin[axis]) // self._cell_sizes[axis]) for axis in range(self._dimensions)
        )
        if self._cell_counts is not None:
            key = tuple(index % count for index, count in zip(key, self._cell_counts))
        return key

    def _block_keys(self, position: Vector, radius: float) -> List[CellKey]:
        base_key = self.cell_key(position)
        offsets = self.build_neighbor_cell_offsets(radius)
        if self._cell_counts is None:
            return [tuple(base + delta for base, delta in zip(base_key, offset)) for offset in offsets]
        # Small toroidal grids alias several offsets onto one cell.
        keys = {
            tuple((base + delta) % count for base, delta, count in zip(base_key, offset, self._cell_counts))
            for offset in offsets
        }
        return list(keys)
