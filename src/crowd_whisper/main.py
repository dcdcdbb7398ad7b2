"""
Crowd Whisper Main Application
==============================

FastAPI host process for the crowd density engine.

The engine itself is transport-agnostic; this module only wires it to
HTTP and WebSocket clients the way the dashboard expects.

Endpoints:
    GET  /          - Service information
    GET  /health    - Liveness probe
    GET  /zones     - Zone definitions
    GET  /alerts    - Active alerts (or ?status=acknowledged|resolved)
    GET  /metrics   - Engine metrics
    WS   /ws        - Readings and control commands in, events out

WebSocket Messages (client -> server):
    {"event": "sensor_data", "data": {<SensorReading>}}
    {"event": "control", "data": {"type": "add-crowd", "zone_id": "...", "count": 20}}

WebSocket Messages (server -> client):
    {"event": "density_update", "data": {<DensitySample>}}
    {"event": "alert", "data": {<Alert>}}
    {"event": "alert_updated", "data": {"id": "...", "status": "acknowledged"}}
    {"event": "error", "data": {"message": "..."}}
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from crowd_whisper.alerts import AlertEvaluator, AlertThresholds
from crowd_whisper.config import Settings, settings
from crowd_whisper.engine import Engine
from crowd_whisper.errors import ZoneStoreUnavailable
from crowd_whisper.models import AlertStatus, ControlCommand, SensorReading
from crowd_whisper.signals import DensityEstimator, ReadingWindow
from crowd_whisper.simulation import CrowdSimulator, SimulationConfig
from crowd_whisper.stores import InMemoryAlertStore, InMemoryZoneStore
from crowd_whisper.stream import EventBroadcaster


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_engine: Optional[Engine] = None
_zone_store: Optional[InMemoryZoneStore] = None
_alert_store: Optional[InMemoryAlertStore] = None
_startup_time: float = 0.0


def get_engine() -> Optional[Engine]:
    return _engine


# =============================================================================
# Engine Factory
# =============================================================================

def create_engine(
    config: Settings,
    zone_store: InMemoryZoneStore,
    alert_store: InMemoryAlertStore,
) -> Engine:
    """Build an Engine and its components from settings."""
    window = ReadingWindow(horizon_seconds=config.engine.window_horizon_seconds)

    estimator = DensityEstimator(
        window,
        history_size=config.engine.trend_history_size,
        trend_threshold=config.engine.trend_threshold,
    )

    evaluator = AlertEvaluator(
        thresholds=AlertThresholds(
            high=config.alerts.high_threshold,
            critical=config.alerts.critical_threshold,
        ),
        cooldown_seconds=config.alerts.cooldown_seconds,
    )

    sim = config.simulation
    simulator = CrowdSimulator(
        SimulationConfig(
            device_count=sim.device_count,
            update_interval_seconds=sim.update_interval_seconds,
            movement_speed=sim.movement_speed,
            step_degrees=sim.step_degrees,
            emergency_fraction=sim.emergency_fraction,
            emergency_speed_multiplier=sim.emergency_speed_multiplier,
            emergency_duration_ticks=sim.emergency_duration_ticks,
            seed=sim.seed,
        )
    )

    return Engine(
        zone_store=zone_store,
        alert_store=alert_store,
        broadcaster=EventBroadcaster(queue_size=config.engine.subscriber_queue_size),
        window=window,
        estimator=estimator,
        evaluator=evaluator,
        simulator=simulator,
        sweep_interval_seconds=config.engine.sweep_interval_seconds,
        ingest_queue_size=config.engine.ingest_queue_size,
    )


def create_zone_store(path: str) -> InMemoryZoneStore:
    """Load the zone store, starting empty if the file is missing."""
    store = InMemoryZoneStore()
    if Path(path).exists():
        store.load_from_file(path)
    else:
        logger.warning(f"Zone file not found: {path}, starting with no zones")
    return store


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _engine, _zone_store, _alert_store, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    _zone_store = create_zone_store(settings.zones.definition_path)
    _alert_store = InMemoryAlertStore()
    _engine = create_engine(settings, _zone_store, _alert_store)
    _engine.start()

    yield

    logger.info("Shutting down gracefully...")
    await _engine.shutdown()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="crowd-whisper",
    description="Real-time crowd density estimation engine",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": settings.service.name,
        "version": settings.service.version,
        "status": "running",
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe - always 200 while the process is up."""
    return JSONResponse({
        "status": "ok",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/zones")
async def zones() -> JSONResponse:
    """Current zone definitions."""
    if _zone_store is None:
        return JSONResponse({"error": "Zone store not ready"}, status_code=503)
    return JSONResponse([z.model_dump(mode="json") for z in _zone_store.list_zones()])


@app.get("/alerts")
async def alerts(status: AlertStatus = AlertStatus.ACTIVE) -> JSONResponse:
    """Alerts with the given status (active by default), oldest first."""
    if _alert_store is None:
        return JSONResponse({"error": "Alert store not ready"}, status_code=503)
    return JSONResponse([a.model_dump(mode="json") for a in _alert_store.list_alerts(status)])


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    if _engine is None:
        return JSONResponse({"error": "Engine not ready"}, status_code=503)
    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        **_engine.get_metrics(),
    })


# =============================================================================
# WebSocket Endpoint
# =============================================================================

async def _forward_events(websocket: WebSocket, subscription) -> None:
    """Push broadcast events to one client until cancelled."""
    while True:
        event = await subscription.get()
        await websocket.send_json(event.model_dump(mode="json"))


def _handle_message(engine: Engine, message) -> Optional[str]:
    """
    Apply one client message.

    Returns:
        Error text to send back, or None on success
    """
    if not isinstance(message, dict):
        return "Message must be a JSON object"

    kind = message.get("event")
    data = message.get("data") or {}

    try:
        if kind == "sensor_data":
            engine.submit(SensorReading.model_validate(data))
        elif kind == "control":
            engine.handle_command(ControlCommand.model_validate(data))
        else:
            return f"Unknown event: {kind}"
    except ValidationError as e:
        return f"Invalid {kind} payload: {e.error_count()} validation error(s)"
    except ZoneStoreUnavailable as e:
        return str(e)

    return None


@app.websocket("/ws")
async def event_stream(websocket: WebSocket) -> None:
    """Bidirectional channel for readings, commands and events."""
    engine = get_engine()
    await websocket.accept()

    if engine is None:
        await websocket.close(code=1013)
        return

    subscription = engine.broadcaster.subscribe()
    sender = asyncio.create_task(_forward_events(websocket, subscription))
    logger.info("Client connected to /ws")

    try:
        while True:
            message = await websocket.receive_json()
            error = _handle_message(engine, message)
            if error:
                await websocket.send_json({"event": "error", "data": {"message": error}})

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        sender.cancel()
        engine.broadcaster.unsubscribe(subscription)
        # A dashboard disconnect ends its simulation
        engine.simulator.stop()
        logger.info("Client disconnected from /ws")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "crowd_whisper.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
