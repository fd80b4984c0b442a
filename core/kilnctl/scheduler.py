"""
Schedule Engine

Runs a multi-step ramp/soak firing schedule by moving the controller's
setpoint once per tick.

Each step first ramps linearly from its ramp start temperature to its
target over ``rampMinutes``, then holds the target for ``soakMinutes``.
When the last step finishes the process is disabled and the schedule is
torn down.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable

from .events import EventSource
from .exceptions import ValidationError
from .models import ScheduleStatus, ScheduleStep, epoch_ms
from .settings import KilnSettings

logger = logging.getLogger(__name__)


@dataclass
class ScheduleState:
    """Progress through the active schedule (clock seconds)."""

    steps: list[ScheduleStep]
    step_index: int
    started_at: float
    step_started_at: float


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


class ScheduleEngine:
    """Drives the controller setpoint from a ramp/soak schedule."""

    def __init__(
        self,
        settings: KilnSettings,
        controller,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize schedule engine.

        Args:
            settings: Kiln settings (temperature bounds, tick interval)
            controller: Anything with get_target_temperature/set_target_temperature
            clock: Time source in seconds
        """
        self.settings = settings
        self.controller = controller
        self.clock = clock

        self.state: ScheduleState | None = None
        self.updates = EventSource("schedule")

        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self.state is not None

    def validate_schedule(self, schedule: Any) -> list[ScheduleStep]:
        """Validate a schedule as a whole.

        Args:
            schedule: List of step dicts (camelCase or snake_case keys)

        Returns:
            Normalized steps

        Raises:
            ValidationError: If the schedule or any of its steps is invalid
        """
        if not isinstance(schedule, list):
            raise ValidationError("Schedule must be an array")
        if not schedule:
            raise ValidationError("Schedule must have at least one step")

        return [self._validate_step(i, step) for i, step in enumerate(schedule)]

    def _validate_step(self, index: int, step: Any) -> ScheduleStep:
        lo, hi = self.settings.min_temperature, self.settings.max_temperature

        if isinstance(step, ScheduleStep):
            step = step.to_dict()
        if not isinstance(step, dict):
            raise ValidationError(f"Step {index + 1} must be an object")

        def get(camel: str, snake: str):
            return step[camel] if camel in step else step.get(snake)

        temperature = step.get("temperature")
        if not _is_number(temperature) or not self.settings.in_range(temperature):
            raise ValidationError(
                f"Step {index + 1}: temperature must be a number between {lo:g} and {hi:g}"
            )

        ramp = get("rampMinutes", "ramp_minutes")
        if ramp is None:
            ramp = 0
        if not _is_number(ramp) or ramp < 0:
            raise ValidationError(f"Step {index + 1}: ramp time must be a non-negative number")

        soak = get("soakMinutes", "soak_minutes")
        if soak is None:
            soak = 0
        if not _is_number(soak) or soak < 0:
            raise ValidationError(f"Step {index + 1}: soak time must be a non-negative number")

        ramp = int(round(ramp))
        soak = int(round(soak))
        if ramp == 0 and soak == 0:
            raise ValidationError(f"Step {index + 1}: ramp and soak times cannot both be zero")

        ramp_start = None
        if ramp > 0:
            ramp_start = get("rampStartTemperature", "ramp_start_temperature")
            if ramp_start is None:
                ramp_start = lo
            if not _is_number(ramp_start) or not self.settings.in_range(ramp_start):
                raise ValidationError(
                    f"Step {index + 1}: ramp start temperature must be a number "
                    f"between {lo:g} and {hi:g}"
                )

        return ScheduleStep(
            temperature=temperature,
            ramp_minutes=ramp,
            soak_minutes=soak,
            ramp_start_temperature=ramp_start,
        )

    def set_schedule(self, schedule: Any):
        """Replace the active schedule and start running it.

        Passing None clears the schedule.

        Raises:
            ValidationError: If the schedule is invalid (the active one is kept)
        """
        if schedule is None:
            self.clear_schedule()
            return

        steps = self.validate_schedule(schedule)

        if self.state:
            self.clear_schedule(notify=False)

        now = self.clock()
        self.state = ScheduleState(
            steps=steps,
            step_index=0,
            started_at=now,
            step_started_at=now,
        )
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Schedule started with {len(steps)} step(s)")
        self.update()

    def update(self):
        """Recompute the desired setpoint and publish progress."""
        state = self.state
        if state is None:
            return

        while True:
            step = state.steps[state.step_index]
            minutes = (self.clock() - state.step_started_at) / 60

            if minutes < step.ramp_minutes:
                start = step.ramp_start_temperature
                desired = start + (step.temperature - start) * (minutes / step.ramp_minutes)
                break
            if minutes < step.ramp_minutes + step.soak_minutes:
                desired = step.temperature
                break

            if state.step_index == len(state.steps) - 1:
                self._complete()
                return

            state.step_index += 1
            state.step_started_at = self.clock()
            logger.info(f"Schedule advancing to step {state.step_index + 1}/{len(state.steps)}")

        if self.controller.get_target_temperature() != desired:
            self.controller.set_target_temperature(desired)

        self.updates.emit(self.get_status().to_dict())

    def get_status(self) -> ScheduleStatus:
        """Progress snapshot; the idle value when no schedule is active."""
        state = self.state
        if state is None:
            return ScheduleStatus(now=epoch_ms(self.clock()))

        index = state.step_index
        return ScheduleStatus(
            previous_steps=list(state.steps[:index]),
            current_step=state.steps[index] if index < len(state.steps) else None,
            future_steps=list(state.steps[index + 1:]),
            started_at=epoch_ms(state.started_at),
            step_started_at=epoch_ms(state.step_started_at),
            now=epoch_ms(self.clock()),
        )

    def clear_schedule(self, notify: bool = True):
        """Stop the schedule and disable the process.

        Args:
            notify: Publish the idle status afterwards
        """
        if self._task:
            self._task.cancel()
            self._task = None

        self.controller.set_target_temperature(0)

        if self.state:
            logger.info("Schedule cleared")
        self.state = None

        if notify:
            self.updates.emit(self.get_status().to_dict())

    def _complete(self):
        """Finish the last step: disable, report every step as done, tear down."""
        self.controller.set_target_temperature(0)
        self.state.step_index += 1
        self.updates.emit(self.get_status().to_dict())
        logger.info("Schedule complete")
        self.clear_schedule(notify=False)

    async def _run_loop(self):
        """Tick loop - one update per schedule tick."""
        while self.state is not None:
            await asyncio.sleep(self.settings.schedule_tick)
            try:
                self.update()
            except Exception as e:
                logger.error(f"Error in schedule loop: {e}", exc_info=True)
