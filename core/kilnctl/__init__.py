"""Kiln controller package."""

# Define public API
__all__ = [
    "KilnSettings",
    "PIDTunings",
    "RelaySettings",
    "load_settings",
    "KilnController",
    "ScheduleEngine",
    "RelayLink",
    "ControllerStatus",
    "ScheduleStatus",
    "ScheduleStep",
]

# Import settings
from .settings import KilnSettings, PIDTunings, RelaySettings, load_settings

# Import models
from .models import ControllerStatus, ScheduleStatus, ScheduleStep

# Import components
from .controller import KilnController
from .relay import RelayLink
from .scheduler import ScheduleEngine
