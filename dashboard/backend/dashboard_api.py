"""
connwatch Dashboard API
FastAPI backend providing REST API and WebSocket for real-time connectivity status
"""
from __future__ import annotations

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from connwatch.config import Settings
from connwatch.monitoring.status_broadcaster import StatusBroadcaster
from connwatch.runtime import MonitorRuntime, build_runtime
from connwatch.utils.logger import configure_logging, logger
from connwatch.utils.settings_loader import load_settings
from dashboard.backend.connectivity_api import include_connectivity_router


# WebSocket manager
class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"WebSocket client connected. Total: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info(f"WebSocket client disconnected. Total: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Broadcast message to all connected clients."""
        if not self.active_connections:
            logger.debug("No active WebSocket connections to broadcast to")
            return

        logger.debug(f"Broadcasting {message['type']} to {len(self.active_connections)} clients")
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Error broadcasting to client: {e}")


def create_app(
    settings: Optional[Settings] = None,
    runtime_factory: Optional[Callable[[Settings], MonitorRuntime]] = None,
) -> FastAPI:
    """Build the dashboard app. The monitor is created and started by the lifespan."""
    settings = settings or load_settings(os.environ.get("CONNWATCH_CONFIG"))
    runtime_factory = runtime_factory or build_runtime
    manager = ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime = runtime_factory(settings)
        await runtime.start()
        broadcaster = StatusBroadcaster(runtime.monitor, manager.broadcast)
        broadcaster.attach()
        app.state.connectivity = runtime
        logger.info("connwatch Dashboard API started")
        try:
            yield
        finally:
            broadcaster.detach()
            app.state.connectivity = None
            await runtime.close()
            logger.info("connwatch Dashboard API shutdown")

    app = FastAPI(
        title="connwatch Dashboard API",
        description="Real-time connectivity monitor backend",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.connectivity = None
    app.state.ws_manager = manager

    # Enable CORS for React frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.dashboard.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    include_connectivity_router(app)

    @app.get("/")
    async def root():
        return {"service": "connwatch", "status": "running"}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for real-time updates."""
        await manager.connect(websocket)

        try:
            # Send initial status
            await websocket.send_json({
                "type": "connected",
                "message": "WebSocket connection established",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            runtime = websocket.app.state.connectivity
            if runtime is not None:
                await websocket.send_json({"type": "connectivity", "data": runtime.monitor.snapshot.to_dict()})

            # Keep connection alive and handle incoming messages
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_json({"type": "pong"})

        except WebSocketDisconnect:
            manager.disconnect(websocket)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = load_settings(os.environ.get("CONNWATCH_CONFIG"))
    configure_logging(
        log_file=_settings.logging.log_file,
        level=_settings.logging.level,
        serialize=_settings.logging.serialize,
        timezone=_settings.logging.timezone,
    )
    uvicorn.run(
        "dashboard.backend.dashboard_api:app",
        host=_settings.dashboard.host,
        port=_settings.dashboard.port,
        log_level="info",
    )
