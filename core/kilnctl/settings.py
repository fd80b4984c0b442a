"""
Kiln Configuration Settings

Explicit configuration objects handed to each component constructor.
User-facing settings are loaded from config.yaml (same keys as the device
config: deviceName, minTemperature, pidTunings, ...).
"""

import os
import re
from dataclasses import dataclass, field, fields

import yaml

from .exceptions import ConfigurationError


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def _known_fields(cls, data: dict, section: str) -> dict:
    """Convert keys to snake_case and reject anything the dataclass doesn't know."""
    converted = {_camel_to_snake(k): v for k, v in data.items()}
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(converted) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown {section} setting(s): {', '.join(unknown)}")
    return converted


@dataclass
class PIDTunings:
    """PID gains."""

    kp: float = 400.0
    ki: float = 100.0
    kd: float = 30.0

    @classmethod
    def from_dict(cls, data: dict) -> "PIDTunings":
        """Create from dictionary (accepts Kp/Ki/Kd as well as kp/ki/kd)."""
        return cls(**{k.lower(): float(v) for k, v in data.items() if k.lower() in ("kp", "ki", "kd")})

    def to_dict(self) -> dict:
        return {"Kp": self.kp, "Ki": self.ki, "Kd": self.kd}


@dataclass
class RelaySettings:
    """Remote intake reached over ssh."""

    hostname: str
    user: str
    intake_path: str
    identity_file: str | None = None
    interpreter: str = "python3"  # Runs intake_path on the remote host
    reconnect_delay: float = 1.0  # Only used when the ssh process cannot be spawned

    @classmethod
    def from_dict(cls, data: dict) -> "RelaySettings":
        """Create from dictionary."""
        converted = _known_fields(cls, data, "relay")
        try:
            return cls(**converted)
        except TypeError as e:
            raise ConfigurationError(f"Invalid relay settings: {e}") from e

    def command(self) -> list[str]:
        """Build the ssh command line that starts the remote intake."""
        args = ["ssh"]
        if self.identity_file:
            args += ["-i", self.identity_file]
        args.append(f"{self.user}@{self.hostname}")
        args += [self.interpreter, self.intake_path]
        return args


@dataclass
class KilnSettings:
    """Configuration for a single kiln."""

    device_name: str
    min_temperature: float
    max_temperature: float
    baud_rate: int = 115200
    pid_tunings: PIDTunings = field(default_factory=PIDTunings)
    relay: RelaySettings | None = None  # None disables the remote relay
    control_interval: float = 2.0  # seconds between PID steps
    schedule_tick: float = 1.0  # seconds between schedule updates
    update_debounce: float = 0.25  # quiet period before a sensor update is published
    history_size: int = 4000
    sensor_scale: float = 0.01  # raw sensor codes are hundredths of a degree

    def __post_init__(self):
        if self.min_temperature >= self.max_temperature:
            raise ConfigurationError(
                f"minTemperature ({self.min_temperature}) must be below "
                f"maxTemperature ({self.max_temperature})"
            )
        if self.history_size <= 0:
            raise ConfigurationError("historySize must be positive")

    def in_range(self, temperature: float) -> bool:
        """Whether a temperature lies inside the configured bounds."""
        return self.min_temperature <= temperature <= self.max_temperature

    @classmethod
    def from_dict(cls, data: dict) -> "KilnSettings":
        """Create from dictionary."""
        converted = _known_fields(cls, data, "kiln")

        if isinstance(converted.get("pid_tunings"), dict):
            converted["pid_tunings"] = PIDTunings.from_dict(converted["pid_tunings"])
        if isinstance(converted.get("relay"), dict):
            converted["relay"] = RelaySettings.from_dict(converted["relay"])

        try:
            return cls(**converted)
        except TypeError as e:
            raise ConfigurationError(f"Invalid kiln settings: {e}") from e


def load_settings(path: str) -> KilnSettings:
    """Load kiln settings from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, unparseable or invalid
    """
    if not os.path.exists(path):
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error reading config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    return KilnSettings.from_dict(data)
