"""
Sensor fusion: per-sensor exponential smoothing averaged into one process
temperature.
"""

from .codec import FUSED_SENSORS, is_temperature_register

# Weight kept from the previous smoothed value
SMOOTHING_WEIGHT = 4 / 5

# Reported before the first reading arrives
AMBIENT_TEMPERATURE = 22.0


class SensorFusion:
    """Smooths raw thermocouple codes and derives the process temperature."""

    def __init__(self, scale: float = 0.01):
        """Initialize sensor fusion.

        Args:
            scale: Multiplier converting raw sensor codes to degrees
        """
        self.scale = scale
        self.computed: dict[str, float] = {"temperature": AMBIENT_TEMPERATURE}

    def observe(self, name: str, raw_value: int) -> bool:
        """Feed one register update.

        Returns:
            True if the fused ``temperature`` was recomputed
        """
        if not is_temperature_register(name):
            return False

        value = raw_value * self.scale
        if name in self.computed:
            self.computed[name] = (
                self.computed[name] * SMOOTHING_WEIGHT + value * (1 - SMOOTHING_WEIGHT)
            )
        else:
            # First reading for this sensor seeds the average
            self.computed[name] = value

        present = [self.computed[s] for s in FUSED_SENSORS if s in self.computed]
        if not present:
            return False

        self.computed["temperature"] = sum(present) / len(present)
        return True

    @property
    def temperature(self) -> float:
        return self.computed["temperature"]
