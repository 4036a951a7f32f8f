"""Logical time: integer ticks and their conversion to real durations."""

import math
from dataclasses import dataclass

from .errors import ConfigurationError

Tick = int

# Absorbs float noise such as 0.3 / 0.1 == 2.9999999999999996
_EPSILON = 1e-9


@dataclass(frozen=True)
class TickClock:
    """Converts between seconds and simulation ticks.

    Attributes:
        tick_size: Real duration of one tick, in seconds
        tick_until: Length of the simulated window, in seconds
    """
    tick_size: float
    tick_until: float

    def __post_init__(self):
        """Validate clock parameters."""
        if self.tick_size <= 0:
            raise ConfigurationError(f"tick_size must be positive, got {self.tick_size}")
        if self.tick_until < 0:
            raise ConfigurationError(f"tick_until cannot be negative, got {self.tick_until}")

    @property
    def horizon(self) -> Tick:
        """Last tick that may be processed (ticks 0..horizon inclusive)."""
        return int(math.floor(self.tick_until / self.tick_size + _EPSILON))

    def to_ticks(self, duration: float) -> Tick:
        """Convert a duration in seconds to ticks, rounding up."""
        if duration < 0:
            raise ConfigurationError(f"Durations cannot be negative, got {duration}")
        return int(math.ceil(duration / self.tick_size - _EPSILON))

    def to_seconds(self, ticks: Tick) -> float:
        """Convert a tick count back to seconds."""
        return ticks * self.tick_size
