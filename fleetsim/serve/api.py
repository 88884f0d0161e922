"""FastAPI application exposing the simulator state, statistics and commands."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect

from ..errors import (
    AlertAlreadyProgrammed,
    AlertNotFound,
    NodeNotFound,
    SchedulingError,
)
from ..runtime.engine import SimulationConfig, SimulationEngine
from ..sim.fleet import Location
from ..sim.kpis import predict
from ..sim.patterns import next_transition, pattern_for
from ..utils.logging import logger
from .broadcaster import CLOSED, Broadcaster
from .schemas import (
    MaintenanceRequest,
    NodeCreate,
    PerformanceModel,
    PredictionModel,
    SnapshotModel,
    TrafficPatternResponse,
)


class AppState:
    def __init__(self, engine: SimulationEngine, broadcaster: Broadcaster):
        self.engine = engine
        self.broadcaster = broadcaster


def _naive_local(value: datetime) -> datetime:
    """The simulator clock is naive local time; convert aware inputs to it."""

    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def create_app(
    config: SimulationConfig | None = None,
    engine: SimulationEngine | None = None,
    autostart: bool = True,
    broadcaster: Broadcaster | None = None,
) -> FastAPI:
    if broadcaster is None:
        broadcaster = Broadcaster()
    if engine is None:
        engine = SimulationEngine(config)
    engine.publish = broadcaster.broadcast
    state = AppState(engine, broadcaster)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if autostart:
            await engine.start()
        try:
            yield
        finally:
            await engine.stop()

    app = FastAPI(title="Traffic Signal Fleet Simulator API", lifespan=lifespan)
    app.state.runtime = state

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "healthy", "timestamp": engine.clock().isoformat(), "ticks": engine.ticks}

    @app.get("/snapshot", response_model=SnapshotModel)
    async def snapshot() -> Dict[str, Any]:
        return engine.current_snapshot().as_dict()

    @app.get("/nodes")
    async def list_nodes() -> List[Dict[str, Any]]:
        return list(engine.current_snapshot().nodes)

    @app.post("/nodes", status_code=201)
    async def add_node(payload: NodeCreate) -> Dict[str, Any]:
        location = None
        if payload.latitude is not None and payload.longitude is not None:
            location = Location(payload.latitude, payload.longitude)
        node = await engine.add_node(payload.name, location)
        return node.as_dict()

    @app.get("/alerts")
    async def list_alerts() -> List[Dict[str, Any]]:
        return list(engine.current_snapshot().alerts)

    @app.get("/maintenance")
    async def list_tasks() -> List[Dict[str, Any]]:
        return list(engine.current_snapshot().tasks)

    @app.post("/maintenance", status_code=201)
    async def schedule_maintenance(payload: MaintenanceRequest) -> Dict[str, Any]:
        start = _naive_local(payload.start) if payload.start is not None else None
        try:
            task = await engine.schedule_maintenance(payload.node_id, payload.type, payload.alert_id, start)
        except (NodeNotFound, AlertNotFound) as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except (AlertAlreadyProgrammed, SchedulingError) as exc:
            logger.info("Maintenance request for {} refused: {}", payload.node_id, exc)
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return task.as_dict()

    @app.get("/traffic-pattern", response_model=TrafficPatternResponse)
    async def traffic_pattern(time: Optional[datetime] = None) -> Dict[str, Any]:
        at = _naive_local(time) if time is not None else engine.clock()
        pattern, period = pattern_for(at)
        return {
            "time": at.isoformat(),
            "period": period.value,
            "pattern": pattern.as_dict(),
            "nextTransition": next_transition(at).as_dict(),
        }

    @app.get("/statistics")
    async def statistics() -> Dict[str, Any]:
        return engine.statistics()

    @app.get("/visualization/traffic")
    async def visualization_traffic() -> Dict[str, Any]:
        return engine.aggregator.traffic_dict()

    @app.get("/visualization/maintenance")
    async def visualization_maintenance() -> Dict[str, Any]:
        return engine.aggregator.maintenance_dict()

    @app.get("/visualization/alerts")
    async def visualization_alerts() -> Dict[str, Any]:
        return engine.aggregator.alerts_dict()

    @app.get("/visualization/predictions", response_model=List[PredictionModel])
    async def visualization_predictions(hours: int = Query(default=24, ge=1, le=168)) -> List[Dict[str, Any]]:
        return predict(engine.clock(), hours)

    @app.get("/visualization/performance", response_model=PerformanceModel)
    async def visualization_performance() -> Dict[str, Any]:
        return engine.performance()

    @app.websocket("/ws/stream")
    async def ws_stream(socket: WebSocket):
        await socket.accept()
        queue = await broadcaster.register()
        try:
            await socket.send_json({"type": "initial", "data": engine.current_snapshot().as_dict()})
            while True:
                payload = await queue.get()
                if payload is CLOSED:
                    logger.info("Closing websocket that fell behind the event stream")
                    await socket.close(code=1013)
                    break
                await socket.send_json(payload)
        except WebSocketDisconnect:
            logger.debug("Websocket client disconnected")
        finally:
            await broadcaster.unregister(queue)

    return app


app = create_app()


__all__ = ["create_app", "app", "AppState"]
