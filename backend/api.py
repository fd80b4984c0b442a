"""
Kiln API Endpoints
"""

import os
import sys
from typing import Any

from fastapi import APIRouter, HTTPException
from loguru import logger
from pydantic import BaseModel

# Add core to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.kilnctl.controller import KilnController
from core.kilnctl.scheduler import ScheduleEngine

router = APIRouter()

# Set by app.py during startup
controller: KilnController | None = None
scheduler: ScheduleEngine | None = None

OK = {"ok": True}


class SetTemperatureRequest(BaseModel):
    """Request body for setting the target temperature."""
    temperature: float


class TuningsRequest(BaseModel):
    """Request body for changing the PID gains."""
    Kp: float
    Ki: float
    Kd: float


class ScheduleRequest(BaseModel):
    """Request body for replacing (or clearing, with null) the schedule."""
    schedule: Any = None


def _controller() -> KilnController:
    if controller is None:
        raise HTTPException(status_code=503, detail="Controller not initialized")
    return controller


def _scheduler() -> ScheduleEngine:
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": "kilnctl",
        "version": "0.1.0",
        "controller": controller is not None,
    }


@router.get("/status")
async def get_status():
    """Current raw registers, fused temperatures and setpoint."""
    return _controller().get_status().to_dict()


@router.get("/history")
async def get_history():
    """Recent control-loop samples, oldest first."""
    return _controller().get_history()


@router.post("/on")
async def relays_on():
    await _controller().enable_relays()
    return OK


@router.post("/off")
async def relays_off():
    await _controller().disable_relays()
    return OK


@router.post("/set")
async def set_temperature(request: SetTemperatureRequest):
    """Set the target temperature (0 disables the process)."""
    if request.temperature < 0:
        raise HTTPException(
            status_code=400,
            detail="Parameter 'temperature' must be a non-negative number",
        )

    _controller().set_target_temperature(request.temperature)
    logger.info(f"Target temperature set to {request.temperature}")
    return OK


@router.get("/tunings")
async def get_tunings():
    return _controller().get_tunings().to_dict()


@router.post("/tunings")
async def set_tunings(request: TuningsRequest):
    _controller().set_tunings(request.Kp, request.Ki, request.Kd)
    return OK


@router.get("/schedule")
async def get_schedule():
    """Progress of the active schedule (idle value when none)."""
    return _scheduler().get_status().to_dict()


@router.post("/schedule")
async def set_schedule(request: ScheduleRequest):
    """Start a new schedule, or clear the active one with null."""
    _scheduler().set_schedule(request.schedule)
    return OK
