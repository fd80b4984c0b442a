"""
Kiln Backend Application

FastAPI application wiring the controller, schedule engine and relay link.
"""

import os
import sys
from contextlib import asynccontextmanager

import log_config  # noqa: F401
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

# Add core to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import api
from api import router as api_router

from core.kilnctl.controller import KilnController
from core.kilnctl.exceptions import TransportError, ValidationError
from core.kilnctl.relay import RelayLink
from core.kilnctl.scheduler import ScheduleEngine
from core.kilnctl.settings import load_settings

CONFIG_PATH = os.environ.get(
    "KILN_CONFIG", os.path.join(os.path.dirname(__file__), "..", "config.yaml")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for startup/shutdown."""
    # Startup
    logger.info("Kiln controller starting")

    settings = load_settings(CONFIG_PATH)
    logger.info(
        f"Loaded config from {CONFIG_PATH}: device={settings.device_name}, "
        f"range={settings.min_temperature:g}-{settings.max_temperature:g}"
    )

    controller = KilnController(settings)
    await controller.start()

    scheduler = ScheduleEngine(settings, controller)

    relay = None
    if settings.relay:
        relay = RelayLink(settings.relay, controller, scheduler)
        await relay.start()
        logger.info(f"Relaying status to {settings.relay.user}@{settings.relay.hostname}")
    else:
        logger.warning("No relay configured, status stays local")

    # Make components available to API
    api.controller = controller
    api.scheduler = scheduler

    yield

    # Shutdown
    logger.info("Kiln controller shutting down")
    if relay:
        await relay.close()
    scheduler.clear_schedule(notify=False)
    try:
        await controller.disable_relays()
    except TransportError as e:
        logger.error(f"Failed to switch relays off on shutdown: {e}")
    await controller.close()
    api.controller = None
    api.scheduler = None


# Create FastAPI application
app = FastAPI(
    title="Kiln Controller API",
    description="Ramp/soak kiln controller with PID relay control",
    version="0.1.0",
    lifespan=lifespan,
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


@app.exception_handler(ValidationError)
async def validation_exception_handler(request, exc):
    """Rejected setpoints and schedules."""
    return _error(400, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request, exc):
    """Malformed request bodies."""
    messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return _error(400, "; ".join(messages))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(TransportError)
async def transport_exception_handler(request, exc):
    """Serial link failures."""
    logger.error(f"Transport error on {request.url.path}: {exc}")
    return _error(500, str(exc))


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions gracefully."""
    import traceback

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(f"Unhandled exception: {exc}")
    logger.error(f"Request path: {request.url.path}")
    logger.error(f"Stack trace:\n{tb_str}")

    return _error(500, str(exc))


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


# For development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3000)
