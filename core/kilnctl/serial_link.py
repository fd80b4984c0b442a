"""
Serial transport to the kiln controller board.

pyserial is blocking, so reads and writes run in worker threads and the
results are handled back on the event loop.
"""

import asyncio
import logging

import serial

from .exceptions import TransportError

logger = logging.getLogger(__name__)


class SerialTransport:
    """Line-oriented serial link."""

    def __init__(self, device_name: str, baud_rate: int = 115200, read_timeout: float = 1.0):
        """Initialize serial transport.

        Args:
            device_name: Serial device (e.g., "/dev/ttyACM0")
            baud_rate: Line speed
            read_timeout: Seconds a single blocking read may wait
        """
        self.device_name = device_name
        self.baud_rate = baud_rate
        self.read_timeout = read_timeout
        self._port: serial.Serial | None = None

    @property
    def is_open(self) -> bool:
        return self._port is not None and self._port.is_open

    async def open(self) -> None:
        """Open the device.

        Raises:
            TransportError: If the device cannot be opened
        """
        try:
            self._port = await asyncio.to_thread(
                serial.Serial, self.device_name, self.baud_rate, timeout=self.read_timeout
            )
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to open {self.device_name}: {e}") from e
        logger.info(f"Opened {self.device_name} at {self.baud_rate} baud")

    async def readline(self) -> str | None:
        """Read one line.

        Returns:
            The decoded line, "" if the read timed out, or None once the
            port is closed
        """
        if not self.is_open:
            return None
        try:
            raw = await asyncio.to_thread(self._port.readline)
        except (serial.SerialException, OSError, TypeError) as e:
            # TypeError: pyserial reading a port closed under it
            if not self.is_open:
                return None
            raise TransportError(f"Failed to read from {self.device_name}: {e}") from e
        return raw.decode("ascii", errors="replace")

    async def write(self, data: bytes) -> None:
        """Write bytes to the device.

        Raises:
            TransportError: If the port is closed or the write fails
        """
        if not self.is_open:
            raise TransportError(f"{self.device_name} is not open")
        try:
            await asyncio.to_thread(self._port.write, data)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to write to {self.device_name}: {e}") from e

    def close(self) -> None:
        if self._port is not None:
            self._port.close()
            self._port = None
