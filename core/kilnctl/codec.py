"""
Device line protocol.

The controller board prints one register per line as ``NAME=VALUE `` with an
integer value followed by whitespace (e.g. ``T1=2345 raw``), and accepts
plain-text commands terminated by CRLF.
"""

import re

LINE_PATTERN = re.compile(r"^([A-Z0-9]+)=([0-9]+)\s")

# Register holding the relay state reported by the board
RELAY_REGISTER = "R"

# Sensors averaged into the process temperature
FUSED_SENSORS = ("T1", "T2", "T3")


def parse_line(line: str) -> tuple[str, int] | None:
    """Extract a ``(name, value)`` register update from a device line.

    Returns None for anything that isn't a register update.
    """
    match = LINE_PATTERN.match(line.strip())
    if not match:
        return None
    return match.group(1), int(match.group(2))


def is_temperature_register(name: str) -> bool:
    return name.startswith("T")


def encode_command(command: str) -> bytes:
    """Encode a command for the board (``ON``, ``OFF``)."""
    return (command + "\r\n").encode("ascii")
