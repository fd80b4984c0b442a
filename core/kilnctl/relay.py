"""
Relay Link

Forwards controller status (with the latest schedule progress riding
along) to a remote intake process started over ssh. The intake prints
``ready`` once it can accept data; forwarding only happens after that.
Whenever the ssh process exits the link reconnects, until it is closed.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable

from .settings import RelaySettings

logger = logging.getLogger(__name__)

READY_LINE = "ready"

# Unsent bytes allowed to queue up for the worker before updates are dropped
MAX_PENDING_BYTES = 1024 * 1024


class RelayLink:
    """Reconnecting outbound status channel to the remote intake."""

    def __init__(
        self,
        settings: RelaySettings,
        controller,
        scheduler,
        spawn: Callable[[], Awaitable[asyncio.subprocess.Process]] | None = None,
    ):
        """Initialize relay link.

        Args:
            settings: Remote host and intake settings
            controller: Source of status updates (``updates`` event source)
            scheduler: Source of schedule updates (``updates`` and ``get_status()``)
            spawn: Starts the worker process; defaults to the ssh command
        """
        self.settings = settings
        self.controller = controller
        self.scheduler = scheduler
        self._spawn = spawn or self._spawn_ssh

        self.worker: asyncio.subprocess.Process | None = None
        self.status: dict = {}
        self.connect_count = 0

        self._closed = False
        self._stalled = False
        self._task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        return self.controller.updates.has_subscriber(self.record)

    async def start(self):
        """Start connecting in the background."""
        if self._task:
            logger.warning("Relay link already started")
            return
        self._closed = False
        self._task = asyncio.create_task(self._run_loop())

    async def close(self):
        """Stop the link for good and terminate the worker."""
        self._closed = True
        if self.worker:
            self._kill(self.worker)

        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def record(self, status: dict):
        """Merge a controller update and send the accumulated status."""
        self.status.update(status)
        self._transmit()

    def record_schedule(self, schedule: dict):
        """Store a schedule update; it goes out with the next controller update."""
        self.status["schedule"] = schedule

    async def _spawn_ssh(self) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            *self.settings.command(),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    async def _run_loop(self):
        """Keep a worker connected until closed."""
        while not self._closed:
            self.connect_count += 1
            try:
                worker = await self._spawn()
            except OSError as e:
                logger.error(f"Failed to start relay worker: {e}")
                await asyncio.sleep(self.settings.reconnect_delay)
                continue

            self.worker = worker
            if self._closed:
                # Closed while spawning
                self._kill(worker)

            readers = [
                asyncio.create_task(self._read_stream(worker.stdout, self._on_stdout_line)),
                asyncio.create_task(self._read_stream(worker.stderr, self._on_stderr_line)),
            ]
            try:
                await asyncio.gather(*readers)
                await worker.wait()
            except Exception as e:
                logger.error(f"Relay worker failed: {e}", exc_info=True)
                self._kill(worker)
                await worker.wait()
            finally:
                for reader in readers:
                    reader.cancel()
                self._on_close()

    async def _read_stream(self, stream, handler: Callable[[str], None]):
        while True:
            try:
                raw = await stream.readline()
            except ValueError as e:
                # Line longer than the reader limit; it is discarded
                logger.warning(f"Dropped oversized line from relay worker: {e}")
                continue
            if not raw:
                return
            handler(raw.decode("utf-8", errors="replace").rstrip("\r\n"))

    @staticmethod
    def _kill(worker):
        try:
            worker.kill()
        except ProcessLookupError:
            pass

    def _on_stdout_line(self, line: str):
        if line == READY_LINE:
            self._on_ready()
        if line:
            logger.info(f"ssh: {line}")

    def _on_stderr_line(self, line: str):
        if line:
            logger.info(f"ssh stderr: {line}")

    def _on_ready(self):
        self.status = {}
        self.controller.updates.subscribe(self.record)
        self.scheduler.updates.subscribe(self.record_schedule)
        # Don't leave the remote side without schedule progress until the next tick
        self.record_schedule(self.scheduler.get_status().to_dict())

    def _on_close(self):
        logger.info("ssh process closed")
        self.worker = None
        self.controller.updates.unsubscribe(self.record)
        self.scheduler.updates.unsubscribe(self.record_schedule)

    def _transmit(self):
        worker = self.worker
        if worker is None or worker.stdin is None:
            return

        transport = getattr(worker.stdin, "transport", None)
        if transport is not None and transport.get_write_buffer_size() > MAX_PENDING_BYTES:
            if not self._stalled:
                logger.warning("Relay worker is not reading its input, dropping status updates")
                self._stalled = True
            return
        self._stalled = False

        try:
            worker.stdin.write((json.dumps(self.status) + "\n").encode("utf-8"))
        except (OSError, RuntimeError):
            # The worker may be shutting down; the next connection resumes delivery
            pass
