"""Request arrival process modeling."""

from typing import Optional

import numpy as np

from ..core.clock import Tick
from ..core.errors import ConfigurationError
from ..utils.logger import setup_logger

ARRIVAL_PROCESSES = ("poisson", "uniform", "gamma")


class ArrivalProcess:
    """Places a fixed number of arrivals on the ticks ``0..horizon``.

    Supports various arrival processes:
    - Poisson (memoryless arrivals, conditioned on the arrival count)
    - Uniform (evenly spaced)
    - Gamma (bursty)

    Random gaps are normalised to span the window, so every arrival falls
    inside the horizon regardless of the process.
    """

    def __init__(self, process_type: str = 'poisson', rng: Optional[np.random.Generator] = None,
                 gamma_shape: float = 0.5):
        """Initialize arrival process.

        Args:
            process_type: Type of arrival process
            rng: Random generator owned by the replicate
            gamma_shape: Shape of gamma inter-arrival gaps (lower is burstier)
        """
        if process_type not in ARRIVAL_PROCESSES:
            raise ConfigurationError(
                f"Unknown arrival process: {process_type}. "
                f"Expected one of {', '.join(ARRIVAL_PROCESSES)}"
            )
        if gamma_shape <= 0:
            raise ConfigurationError("gamma_shape must be positive")
        self.process_type = process_type
        self.rng = rng if rng is not None else np.random.default_rng()
        self.gamma_shape = gamma_shape
        self.logger = setup_logger(self.__class__.__name__)

    def generate_arrivals(self, count: int, horizon: Tick) -> np.ndarray:
        """Generate arrival ticks.

        Args:
            count: Number of arrivals
            horizon: Last tick an arrival may fall on

        Returns:
            Sorted integer array of ``count`` arrival ticks in ``0..horizon``
        """
        if count < 0:
            raise ValueError("Arrival count cannot be negative")
        if count == 0:
            return np.zeros(0, dtype=np.int64)

        if self.process_type == 'poisson':
            positions = self._normalised_gaps(self.rng.exponential(1.0, size=count + 1))
        elif self.process_type == 'uniform':
            positions = np.arange(count, dtype=float) / count
        else:
            positions = self._normalised_gaps(
                self.rng.gamma(self.gamma_shape, 1.0 / self.gamma_shape, size=count + 1)
            )

        ticks = np.floor(positions * (horizon + 1)).astype(np.int64)
        return np.clip(ticks, 0, horizon)

    @staticmethod
    def _normalised_gaps(gaps: np.ndarray) -> np.ndarray:
        """Turn ``n + 1`` gaps into ``n`` sorted positions in ``[0, 1)``."""
        return np.cumsum(gaps)[:-1] / gaps.sum()
