from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from ..sim.core.config import AppConfig, SimulationConfig
from ..sim.core.simulation import Simulation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1, tick_interval: float = 1.0 / 60.0):
        self.simulation = Simulation(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.tick_interval = tick_interval
        self.running = False
        self.tick = 0
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque()
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._broadcast_task: asyncio.Task | None = None

    @classmethod
    def from_app_config(cls, config: AppConfig) -> "SimulationController":
        return cls(config.simulation, config.broadcast_interval, config.tick_interval)

    async def start(self) -> None:
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def reset(self) -> None:
        async with self._lock:
            self.simulation.reset()
            self.tick = 0
        await self._restart_stream()

    async def load(self, config: SimulationConfig) -> None:
        """Swap in a new configuration; the population is rebuilt from scratch."""
        simulation = Simulation(config)
        async with self._lock:
            self.simulation = simulation
            self.tick = 0
        logger.info("Loaded %s simulation", config.kind.value)
        await self._restart_stream()

    async def update(self, setting: str, value: object) -> None:
        """Apply one runtime setter such as ``noise_level`` or ``world_size``."""
        setter = getattr(self.simulation, f"set_{setting}", None)
        if setter is None or setting not in CONFIG_SETTERS:
            raise ValueError(f"Unknown setting: {setting}")
        async with self._lock:
            setter(value)
            rebuilt = self.simulation.tick_count == 0
            if rebuilt:
                self.tick = 0
        if rebuilt:
            await self._restart_stream()

    async def _restart_stream(self) -> None:
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval / self.speed_multiplier)
            if not self.running:
                continue
            async with self._lock:
                self.simulation.tick()
                self.tick += 1
            if self.tick % self.broadcast_interval == 0:
                await self._broadcast_snapshot()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.simulation.snapshot()
        payload = {
            "type": "snapshot",
            "tick": self.tick,
            "payload": {
                "tick": self.tick,
                "metrics": asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
            },
        }
        return QueuedSnapshot(tick=self.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)
            logger.info("Dropped disconnected client")


CONFIG_SETTERS = {
    "population",
    "world_size",
    "temperature",
    "noise_level",
    "interaction_radius",
    "separation_distance",
    "separation_strength",
    "cohesion_strength",
    "boundary_mode",
}

app = FastAPI(title="Swarm Simulation")
controller = SimulationController.from_app_config(AppConfig())
static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/")
async def index() -> FileResponse:
    return FileResponse(static_dir / "index.html")


@app.get("/api/status")
async def status() -> JSONResponse:
    snapshot = controller.simulation.snapshot()
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "kind": snapshot.metadata.kind,
            "population": len(controller.simulation.agents),
            "metrics": asdict(snapshot.metrics),
        }
    )


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.post("/api/config/preset")
async def load_preset(payload: dict) -> JSONResponse:
    try:
        config = SimulationConfig.preset(str(payload.get("name", "")))
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    await controller.load(config)
    return JSONResponse({"kind": config.kind.value, "tick": controller.tick})


@app.post("/api/config")
async def update_config(payload: dict) -> JSONResponse:
    applied = {}
    try:
        for setting, value in payload.items():
            await controller.update(setting, value)
            applied[setting] = value
    except (TypeError, ValueError) as exc:
        return JSONResponse({"error": str(exc), "applied": applied}, status_code=400)
    return JSONResponse({"applied": applied, "tick": controller.tick})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller"]
