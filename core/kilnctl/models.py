"""
Kiln Data Models

Wire forms use the camelCase keys the remote intake and web UI expect.
"""

from dataclasses import dataclass, field
from typing import Optional


def epoch_ms(seconds: float) -> int:
    """Convert a clock reading in seconds to epoch milliseconds."""
    return int(round(seconds * 1000))


@dataclass
class HistorySample:
    """A single control-loop sample."""

    timestamp: Optional[int]  # epoch ms of the reading that drove the step
    temperature: float
    target: float


@dataclass
class ControllerStatus:
    """Snapshot of the controller state."""

    raw: dict[str, int]
    computed: dict[str, float]
    setpoint: float
    timestamp: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "raw": dict(self.raw),
            "computed": dict(self.computed),
            "setpoint": self.setpoint,
            "timestamp": self.timestamp,
        }


@dataclass
class ScheduleStep:
    """One ramp/soak step of a firing schedule."""

    temperature: float
    ramp_minutes: int = 0
    soak_minutes: int = 0
    ramp_start_temperature: Optional[float] = None  # Only meaningful when ramp_minutes > 0

    def to_dict(self) -> dict:
        data = {
            "temperature": self.temperature,
            "rampMinutes": self.ramp_minutes,
            "soakMinutes": self.soak_minutes,
        }
        if self.ramp_minutes > 0:
            data["rampStartTemperature"] = self.ramp_start_temperature
        return data


@dataclass
class ScheduleStatus:
    """Progress of the active schedule, partitioned around the current step."""

    previous_steps: list[ScheduleStep] = field(default_factory=list)
    current_step: Optional[ScheduleStep] = None
    future_steps: list[ScheduleStep] = field(default_factory=list)
    started_at: int = 0
    step_started_at: int = 0
    now: int = 0

    def to_dict(self) -> dict:
        return {
            "previousSteps": [s.to_dict() for s in self.previous_steps],
            "currentStep": self.current_step.to_dict() if self.current_step else None,
            "futureSteps": [s.to_dict() for s in self.future_steps],
            "startedAt": self.started_at,
            "stepStartedAt": self.step_started_at,
            "now": self.now,
        }
