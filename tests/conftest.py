import asyncio

import pytest

from core.kilnctl.controller import KilnController
from core.kilnctl.exceptions import TransportError
from core.kilnctl.scheduler import ScheduleEngine
from core.kilnctl.settings import KilnSettings


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0):
        self.now += seconds + minutes * 60


class FakeTransport:
    """In-memory serial link."""

    def __init__(self):
        self.writes: list[bytes] = []
        self.lines: asyncio.Queue | None = None
        self.fail_writes = False
        self.opened = False
        self.closed = False

    async def open(self):
        self.opened = True
        self.lines = asyncio.Queue()

    async def readline(self):
        if self.closed:
            return None
        return await self.lines.get()

    async def write(self, data: bytes):
        if self.fail_writes:
            raise TransportError("write failed")
        self.writes.append(data)

    def close(self):
        self.closed = True

    @property
    def commands(self) -> list[str]:
        return [w.decode().strip() for w in self.writes if w.strip()]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return KilnSettings(
        device_name="/dev/null",
        min_temperature=20,
        max_temperature=1300,
        update_debounce=0.01,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def controller(settings, transport, clock):
    return KilnController(settings, transport=transport, clock=clock)


@pytest.fixture
def scheduler(settings, controller, clock):
    engine = ScheduleEngine(settings, controller, clock=clock)
    yield engine
    engine.clear_schedule(notify=False)
