"""
Connectivity API Endpoints for the connwatch Dashboard
Exposes the monitor snapshot, the rendered alert and the alert actions
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from connwatch.monitoring.notification_surface import AlertView
from connwatch.runtime import MonitorRuntime
from connwatch.utils.logger import logger


# Pydantic models for API
class SnapshotModel(BaseModel):
    """Monitor snapshot as published by the state machine."""
    state: str
    is_checking: bool
    attempt_counter: int = Field(..., ge=0)
    last_checked_at: Optional[str] = None
    via: Optional[str] = None
    hint: str
    alert_visible: bool
    offline_mode: bool
    trigger: Optional[str] = None


class AlertActionModel(BaseModel):
    key: str
    label: str
    enabled: bool


class AlertModel(BaseModel):
    """Rendered alert for the notification banner."""
    visible: bool
    level: str
    headline: str
    detail: str
    attempt_counter: int
    state: str
    is_checking: bool
    offline_mode: bool
    actions: List[AlertActionModel]


class ConnectivityResponse(BaseModel):
    snapshot: SnapshotModel
    alert: AlertModel


class RecheckRequest(BaseModel):
    """Fire-and-forget recheck from another part of the system."""
    reason: str = Field("external", description="Why a recheck is wanted (e.g. 'api_error')", max_length=200)


class RecheckResponse(BaseModel):
    accepted: bool
    reason: str


router = APIRouter(prefix="/api/connectivity", tags=["connectivity"])


def _get_runtime(request: Request) -> MonitorRuntime:
    runtime = getattr(request.app.state, "connectivity", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Connectivity monitor is not running",
        )
    return runtime


def _respond(view: AlertView) -> ConnectivityResponse:
    """Response built from the one snapshot the view was rendered from."""
    return ConnectivityResponse(
        snapshot=SnapshotModel(**view.snapshot.to_dict()),
        alert=AlertModel(**view.to_dict()),
    )


@router.get("", response_model=ConnectivityResponse)
async def get_connectivity(request: Request):
    """Current snapshot and the alert rendered from it."""
    runtime = _get_runtime(request)
    return _respond(runtime.surface.render(runtime.monitor.snapshot))


@router.post("/check", response_model=ConnectivityResponse)
async def check_connectivity(request: Request):
    """Run a manual check (or join the one in flight) and return its result."""
    runtime = _get_runtime(request)
    view = await runtime.surface.check_now()
    return _respond(view)


@router.post("/dismiss", response_model=ConnectivityResponse)
async def dismiss_alert(request: Request):
    runtime = _get_runtime(request)
    view = await runtime.surface.dismiss()
    return _respond(view)


@router.post("/offline-mode", response_model=ConnectivityResponse)
async def enable_offline_mode(request: Request):
    """Switch the trading service to simulated trading."""
    runtime = _get_runtime(request)
    view = await runtime.surface.force_offline_mode()
    return _respond(view)


@router.post("/request", response_model=RecheckResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_recheck(request: Request, body: Optional[RecheckRequest] = None):
    runtime = _get_runtime(request)
    reason = body.reason if body else "external"
    runtime.monitor.request_check(reason)
    return RecheckResponse(accepted=True, reason=reason)


# Convenience function to include router in main app
def include_connectivity_router(app):
    """Include connectivity router in FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.include_router(router)
    logger.info("Connectivity API endpoints registered")
