"""Request generation for simulation workloads."""

from typing import TYPE_CHECKING, List, Optional

import numpy as np

from ..core.request import Request
from .arrival_process import ArrivalProcess
from ..utils.logger import setup_logger

if TYPE_CHECKING:
    from ..models.simulation_config import SimulationConfig


class RequestGenerator:
    """Generate the requests of one replicate from the client profiles.

    Each profile contributes ``quantity`` requests whose arrival ticks are
    drawn from the configured arrival process. Request ids are assigned in
    profile order, then arrival draw order, so a seeded replicate always
    produces the same population.
    """

    def __init__(self, config: "SimulationConfig", rng: Optional[np.random.Generator] = None):
        """Initialize request generator.

        Args:
            config: Parsed simulation configuration
            rng: Random generator owned by the replicate
        """
        self.config = config
        self.clock = config.clock
        self.logger = setup_logger(self.__class__.__name__)
        self.arrival_process = ArrivalProcess(config.arrival_process, rng)
        self.request_counter = 0

    def generate(self) -> List[Request]:
        """Generate requests for the simulation window.

        Returns:
            List of pending requests
        """
        horizon = self.clock.horizon
        requests = []

        for profile in self.config.clients:
            arrival_ticks = self.arrival_process.generate_arrivals(profile.quantity, horizon)
            for arrival_tick in arrival_ticks:
                requests.append(self._create_request(profile, int(arrival_tick)))

        self.logger.debug(
            f"Generated {len(requests)} {self.arrival_process.process_type} requests "
            f"over {horizon + 1} ticks"
        )
        return requests

    def _create_request(self, profile, arrival_tick: int) -> Request:
        request = Request.from_profile(self.request_counter, profile, arrival_tick, self.clock)
        self.request_counter += 1
        return request
