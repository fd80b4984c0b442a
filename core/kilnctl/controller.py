"""
Thermal Controller

Owns the serial link to the kiln board, fuses the thermocouple readings and
runs the PID loop that switches the heating relays.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import asdict
from typing import Callable

from simple_pid import PID

from .codec import RELAY_REGISTER, encode_command, parse_line
from .events import Debouncer, EventSource
from .exceptions import OutOfRangeError, TransportError
from .fusion import SensorFusion
from .models import ControllerStatus, HistorySample, epoch_ms
from .serial_link import SerialTransport
from .settings import KilnSettings, PIDTunings

logger = logging.getLogger(__name__)


class KilnController:
    """
    Closed-loop temperature controller.

    Every ``control_interval`` seconds the fused temperature is fed to the
    PID loop and the relays are switched on when the PID output exceeds the
    setpoint. A setpoint of 0 disables the process.
    """

    def __init__(
        self,
        settings: KilnSettings,
        transport: SerialTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.transport = transport or SerialTransport(settings.device_name, settings.baud_rate)
        self.clock = clock

        self.raw: dict[str, int] = {RELAY_REGISTER: 0}
        self.fusion = SensorFusion(scale=settings.sensor_scale)
        self.setpoint: float = 0
        self.timestamp: int | None = None

        self.history: deque[HistorySample] = deque(maxlen=settings.history_size)

        self.updates = EventSource("controller")
        self._update_debouncer = Debouncer(settings.update_debounce, self._send_update)

        # The board may be mid-line when the port opens
        self._discard_next_line = True

        self.tunings = PIDTunings(
            settings.pid_tunings.kp, settings.pid_tunings.ki, settings.pid_tunings.kd
        )
        self.pid = PID(
            self.tunings.kp,
            self.tunings.ki,
            self.tunings.kd,
            setpoint=self.setpoint,
            sample_time=settings.control_interval,
        )
        self.pid.auto_mode = True
        self.last_output: float | None = None
        self.set_target_temperature(0)

        self._running = False
        self._read_task: asyncio.Task | None = None
        self._control_task: asyncio.Task | None = None

    async def start(self):
        """Open the serial link and start the read and control loops.

        Raises:
            TransportError: If the serial device cannot be opened
        """
        if self._running:
            logger.warning("Controller already running")
            return

        await self.transport.open()
        self._discard_next_line = True

        # Clear the command buffer
        try:
            await self.transport.write(b"\r\n\r\n")
            logger.info("serial port open")
        except TransportError as e:
            logger.error(f"Failed to clear command buffer: {e}")

        self._running = True
        self._read_task = asyncio.create_task(self._read_loop())
        self._control_task = asyncio.create_task(self._control_loop())

    async def close(self):
        """Stop the loops and release the serial link."""
        self._running = False
        self._update_debouncer.cancel()

        for task in (self._control_task, self._read_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._control_task = None
        self._read_task = None

        self.transport.close()
        logger.info("Controller stopped")

    async def enable_relays(self):
        """Switch the heating relays on.

        Raises:
            TransportError: If the command cannot be sent
        """
        await self._send_command("ON")

    async def disable_relays(self):
        """Switch the heating relays off.

        Raises:
            TransportError: If the command cannot be sent
        """
        await self._send_command("OFF")

    def get_target_temperature(self) -> float:
        return self.setpoint

    def set_target_temperature(self, temp: float):
        """Set the PID setpoint.

        Args:
            temp: Target temperature, or 0 to disable the process

        Raises:
            OutOfRangeError: If temp is non-zero and outside the configured bounds
        """
        if temp != 0 and not self.settings.in_range(temp):
            raise OutOfRangeError(
                f"Temperature must be between {self.settings.min_temperature:g} and "
                f"{self.settings.max_temperature:g} (or 0 to disable)"
            )

        self.setpoint = temp
        self.pid.setpoint = temp
        self.pid.output_limits = (self.settings.min_temperature, self.settings.max_temperature)

    def get_status(self) -> ControllerStatus:
        """Snapshot of the current state; mutating it doesn't affect the controller."""
        return ControllerStatus(
            raw=dict(self.raw),
            computed=dict(self.fusion.computed),
            setpoint=self.setpoint,
            timestamp=self.timestamp,
        )

    def get_history(self) -> list[dict]:
        return [asdict(sample) for sample in self.history]

    def get_tunings(self) -> PIDTunings:
        return PIDTunings(self.tunings.kp, self.tunings.ki, self.tunings.kd)

    def set_tunings(self, kp: float, ki: float, kd: float):
        """Change the PID gains without resetting the integrator."""
        self.tunings = PIDTunings(kp, ki, kd)
        self.pid.tunings = (kp, ki, kd)
        logger.info(f"PID tunings set: Kp={kp}, Ki={ki}, Kd={kd}")

    def handle_line(self, line: str):
        """Process one line received from the board."""
        if self._discard_next_line:
            # Discard partial first line received
            self._discard_next_line = False
            return

        line = line.strip()
        logger.debug(f"rx: {line}")

        parsed = parse_line(line)
        if parsed is None:
            return

        name, value = parsed
        self.raw[name] = value

        if self.fusion.observe(name, value):
            self.timestamp = epoch_ms(self.clock())
            self._update_debouncer.trigger()

    async def control_step(self):
        """Run one PID step and drive the relays."""
        current_temp = self.fusion.temperature

        output = self.pid(current_temp, dt=self.settings.control_interval)
        self.last_output = output

        if self.setpoint == 0:
            if self.raw.get(RELAY_REGISTER):
                await self.disable_relays()
            return

        self.history.append(
            HistorySample(
                timestamp=self.timestamp,
                temperature=current_temp,
                target=self.setpoint,
            )
        )

        enable = output > self.setpoint

        logger.info(
            f"temp={round(current_temp, 2)} setpoint={round(self.setpoint, 2)} "
            f"PID={round(output, 2)} relays={'ON' if enable else 'OFF'}"
        )

        if enable:
            await self.enable_relays()
        else:
            await self.disable_relays()

    async def _send_command(self, command: str):
        try:
            await self.transport.write(encode_command(command))
        except TransportError as e:
            logger.error(f"Command {command} failed: {e}")
            raise

    def _send_update(self):
        self.updates.emit(self.get_status().to_dict())

    async def _read_loop(self):
        """Feed lines from the serial link into handle_line."""
        while self._running:
            try:
                line = await self.transport.readline()
                if line is None:
                    logger.warning("Serial link closed, read loop stopping")
                    return
                if line:
                    self.handle_line(line)
            except TransportError as e:
                logger.error(f"Error reading serial link: {e}")
                await asyncio.sleep(self.settings.control_interval)

    async def _control_loop(self):
        """Main control loop - one PID step every interval."""
        logger.info("Control loop starting...")

        while self._running:
            await asyncio.sleep(self.settings.control_interval)
            try:
                await self.control_step()
            except TransportError:
                # Already logged; the next step resends
                pass
            except Exception as e:
                logger.error(f"Error in control loop: {e}", exc_info=True)
