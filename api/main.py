"""Paddock API - FastAPI service for the monitoring engine.

Collars and the dashboard talk to this service:
- POST /api/device/data: raw collar reports {id, x, y, battery}
- POST /api/positions: positions for a known entity
- GET /api/alerts, POST /api/alerts/{id}/dismiss: active alerts
- WebSocket /ws: real-time alert and push events

Sweeps run on a background scheduler started with the app.
"""

import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from paddock.core.formatter import alert_to_dict
from paddock.core.geofence import MIN_VERTICES, parse_vertices
from paddock.core.models import Geofence, TrackedEntity, parse_device_payload
from paddock.exceptions import RepositoryError, UnknownEntityError
from paddock.service import MonitoringService, build_service
from paddock.shell.config_loader import load_config

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Admin API key for write endpoints (set in Cloud Run environment)
ADMIN_API_KEY = os.environ.get("ADMIN_API_KEY")

# Set to "false" to drive sweeps externally (Cloud Scheduler)
RUN_SWEEPS = os.environ.get("RUN_SWEEPS", "true").lower() == "true"

_service: MonitoringService | None = None


def get_service() -> MonitoringService:
    """Get or create the monitoring service."""
    global _service
    if _service is None:
        _service = build_service(load_config())
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if RUN_SWEEPS:
        scheduler = get_service().build_scheduler()
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(
    title="Paddock API",
    description="GPS collar monitoring: positions, alerts and real-time events",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# ===== Request Models =====

class DeviceData(BaseModel):
    id: str
    x: float
    y: float
    battery: float


class PositionCreate(BaseModel):
    entity_id: str
    latitude: float
    longitude: float
    accuracy: float | None = None
    battery_level: float | None = None


class EntityCreate(BaseModel):
    name: str
    device_id: str | None = None


class GeofenceCreate(BaseModel):
    name: str
    vertices: list[tuple[float, float]]
    description: str | None = None
    is_active: bool = True


def _verify_admin_key(x_admin_key: str | None) -> None:
    """Verify admin API key."""
    if not ADMIN_API_KEY:
        raise HTTPException(status_code=500, detail="Admin API key not configured")
    if x_admin_key != ADMIN_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid admin key")


# ===== Ingestion =====

@app.post("/api/device/data")
def post_device_data(data: DeviceData, service: MonitoringService = Depends(get_service)):
    """Accept a raw collar report."""
    payload = parse_device_payload(data.model_dump())
    if payload is None:
        raise HTTPException(status_code=400, detail="Invalid data")

    try:
        result = service.ingestor.handle_device_payload(payload)
    except RepositoryError as e:
        logger.error("Failed to store report from device %s: %s", payload.device_id, e)
        raise HTTPException(status_code=503, detail="Storage unavailable")

    return {
        "success": True,
        "device_id": result.device.device_id,
        "registered": result.created,
        "position_id": result.report.id if result.report else None,
    }


@app.post("/api/positions", status_code=201)
def post_position(position: PositionCreate, service: MonitoringService = Depends(get_service)):
    """Record a position for a known entity."""
    try:
        report = service.ingestor.record(
            position.entity_id,
            position.latitude,
            position.longitude,
            accuracy=position.accuracy,
            battery_level=position.battery_level,
        )
    except UnknownEntityError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RepositoryError as e:
        logger.error("Failed to store position for %s: %s", position.entity_id, e)
        raise HTTPException(status_code=503, detail="Storage unavailable")

    return {
        "id": report.id,
        "entityId": report.entity_id,
        "timestamp": report.timestamp.isoformat(),
    }


@app.get("/api/entities/{entity_id}/positions")
def get_positions(
    entity_id: str,
    limit: int = 100,
    service: MonitoringService = Depends(get_service),
):
    """Recent positions for an entity, newest first."""
    if service.repository.get_entity(entity_id) is None:
        raise HTTPException(status_code=404, detail=f"Entity '{entity_id}' not found")

    return {
        "positions": [
            {
                "id": p.id,
                "latitude": p.latitude,
                "longitude": p.longitude,
                "timestamp": p.timestamp.isoformat(),
                "accuracy": p.accuracy,
                "batteryLevel": p.battery_level,
            }
            for p in service.repository.get_positions(entity_id, limit=limit)
        ]
    }


# ===== Alerts =====

@app.get("/api/alerts")
def get_alerts(service: MonitoringService = Depends(get_service)):
    """Active alerts, escalated first, then newest first."""
    return {"alerts": [alert_to_dict(a) for a in service.manager.active_alerts()]}


@app.post("/api/alerts/{alert_id}/dismiss")
def dismiss_alert(alert_id: str, service: MonitoringService = Depends(get_service)):
    """Dismiss an active alert."""
    if not service.manager.dismiss(alert_id):
        raise HTTPException(status_code=404, detail="Alert not found or already dismissed")
    return {"success": True}


# ===== Setup Endpoints =====

@app.post("/api/entities", status_code=201)
def create_entity(
    entity: EntityCreate,
    x_admin_key: str | None = Header(default=None),
    service: MonitoringService = Depends(get_service),
):
    """Register a tracked entity."""
    _verify_admin_key(x_admin_key)

    saved = service.repository.save_entity(TrackedEntity(
        id=str(uuid.uuid4()),
        name=entity.name,
        device_id=entity.device_id,
    ))
    return {"id": saved.id, "name": saved.name, "deviceId": saved.device_id}


@app.get("/api/geofences")
def list_geofences(service: MonitoringService = Depends(get_service)):
    """All geofences, including inactive ones."""
    return {
        "geofences": [
            {
                "id": g.id,
                "name": g.name,
                "isActive": g.is_active,
                "description": g.description,
            }
            for g in service.repository.get_geofences()
        ]
    }


@app.post("/api/geofences", status_code=201)
def create_geofence(
    geofence: GeofenceCreate,
    x_admin_key: str | None = Header(default=None),
    service: MonitoringService = Depends(get_service),
):
    """Create a geofence from [latitude, longitude] vertices."""
    _verify_admin_key(x_admin_key)

    vertices = parse_vertices(geofence.vertices)
    if len(vertices) < MIN_VERTICES:
        raise HTTPException(
            status_code=400,
            detail=f"A geofence needs at least {MIN_VERTICES} vertices",
        )

    saved = service.repository.save_geofence(Geofence(
        id=str(uuid.uuid4()),
        name=geofence.name,
        vertices=[list(v) for v in vertices],
        is_active=geofence.is_active,
        description=geofence.description,
    ))
    return {"id": saved.id, "name": saved.name}


@app.get("/api/devices")
def list_devices(service: MonitoringService = Depends(get_service)):
    """All known devices with connectivity state."""
    return {
        "devices": [
            {
                "id": d.id,
                "deviceId": d.device_id,
                "entityId": d.entity_id,
                "batteryLevel": d.battery_level,
                "isOnline": d.is_online,
                "lastSignal": d.last_signal.isoformat() if d.last_signal else None,
                "firmwareVersion": d.firmware_version,
            }
            for d in service.repository.list_devices()
        ]
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


# ===== Real-time =====

@app.websocket("/ws")
async def realtime(websocket: WebSocket, service: MonitoringService = Depends(get_service)):
    """Stream lifecycle events and push notifications to a dashboard.

    Broadcasts arrive on engine threads; they are handed to this
    connection's event loop through a queue.
    """
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    subscription_id = service.hub.subscribe(
        lambda message: loop.call_soon_threadsafe(queue.put_nowait, message)
    )

    async def forward() -> None:
        while True:
            await websocket.send_json(await queue.get())

    sender = asyncio.create_task(forward())
    try:
        # Inbound messages are ignored; receiving detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("WebSocket subscriber %s disconnected", subscription_id)
    finally:
        sender.cancel()
        service.hub.unsubscribe(subscription_id)
