"""Routing: binding waiting requests to idle servers."""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .clock import Tick, TickClock
from .errors import ConfigurationError
from .request import Request
from .server_pool import Server, ServerPool
from ..utils.logger import setup_logger


class RoutingPolicy(ABC):
    """Decides which idle candidate a waiting request is bound to."""

    #: Whether a decision can change with the passage of time alone. The
    #: scheduler never fast-forwards over ticks with waiting requests when
    #: this is True.
    time_sensitive: bool = False

    @abstractmethod
    def select(self, request: Request, candidates: Iterator[Server], pool: ServerPool,
               current_tick: Tick) -> Optional[Server]:
        """Pick a server for ``request``.

        Args:
            request: Waiting request
            candidates: Lazy sequence of idle matching servers, creation order
            pool: Pool the candidates belong to
            current_tick: Current simulation tick

        Returns:
            The chosen server, or None to leave the request waiting
        """
        pass


class ImmediateMatchPolicy(RoutingPolicy):
    """Bind the first idle server whose attributes satisfy the request."""

    def select(self, request: Request, candidates: Iterator[Server], pool: ServerPool,
               current_tick: Tick) -> Optional[Server]:
        return next(candidates, None)


class BestFitHoldPolicy(RoutingPolicy):
    """Prefer the tightest-fitting server, holding briefly for a better one.

    Fit is the number of server attributes the request does not need. When
    the best idle candidate fits worse than the best server in the whole pool,
    the request is held until it has waited ``max_extra_wait`` ticks, after
    which the best available candidate is taken.
    """

    time_sensitive = True

    def __init__(self, max_extra_wait: Tick):
        if max_extra_wait < 0:
            raise ConfigurationError("max_extra_wait cannot be negative")
        self.max_extra_wait = max_extra_wait

    def select(self, request: Request, candidates: Iterator[Server], pool: ServerPool,
               current_tick: Tick) -> Optional[Server]:
        required = request.required_attributes
        best = None
        best_excess = None
        for server in candidates:
            excess = server.attributes.excess_over(required)
            if best is None or excess < best_excess:
                best, best_excess = server, excess
        if best is None:
            return None

        ideal = pool.best_possible_excess(required)
        if best_excess > ideal and request.waited(current_tick) < self.max_extra_wait:
            return None
        return best


ROUTING_POLICIES = ("immediate", "best_fit")


def create_routing_policy(config: Optional[Dict], clock: TickClock) -> RoutingPolicy:
    """Build a routing policy from the ``routing`` configuration section.

    Args:
        config: Routing configuration (``policy`` and ``max_extra_wait`` in seconds)
        clock: Clock used to convert durations to ticks

    Returns:
        Routing policy instance
    """
    config = config or {}
    policy = config.get('policy', 'immediate')

    if policy == 'immediate':
        return ImmediateMatchPolicy()
    elif policy == 'best_fit':
        max_extra_wait = config.get('max_extra_wait')
        if max_extra_wait is None:
            raise ConfigurationError("routing.max_extra_wait is required for the best_fit policy")
        return BestFitHoldPolicy(clock.to_ticks(max_extra_wait))
    else:
        raise ConfigurationError(
            f"Unknown routing policy: {policy}. Expected one of {', '.join(ROUTING_POLICIES)}"
        )


class Router:
    """Matches waiting requests to idle servers, one pass per tick.

    Requests are considered longest-waiting first; ties go to the request
    created first.
    """

    def __init__(self, pool: ServerPool, policy: Optional[RoutingPolicy] = None):
        """Initialize router.

        Args:
            pool: Server pool to route into
            policy: Routing policy, immediate match when omitted
        """
        self.pool = pool
        self.policy = policy or ImmediateMatchPolicy()
        self.logger = setup_logger(self.__class__.__name__)

    @property
    def time_sensitive(self) -> bool:
        return self.policy.time_sensitive

    def route(self, waiting: Iterable[Request], current_tick: Tick) -> List[Tuple[Request, Server]]:
        """Decide which (request, server) pairs to bind at ``current_tick``.

        The router does not mutate requests or servers; servers chosen earlier
        in the pass are withheld from later requests.

        Returns:
            Bindings in decision order
        """
        idle_left = self.pool.idle_count()
        if idle_left == 0:
            return []

        routes: List[Tuple[Request, Server]] = []
        claimed: Set[int] = set()
        ordered = sorted(waiting, key=lambda r: (r.arrival_tick, r.request_id))

        for request in ordered:
            candidates = (
                server for server in self.pool.idle_matching(request.required_attributes)
                if server.server_id not in claimed
            )
            server = self.policy.select(request, candidates, self.pool, current_tick)
            if server is None:
                continue

            routes.append((request, server))
            claimed.add(server.server_id)
            idle_left -= 1
            if idle_left == 0:
                break

        return routes
