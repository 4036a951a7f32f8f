"""Request lifecycle state machine."""

from enum import Enum
from typing import TYPE_CHECKING, Optional

from .attributes import AttributeSet
from .clock import Tick, TickClock
from .errors import InvariantViolationError

if TYPE_CHECKING:
    from ..models.simulation_config import ClientProfile


class RequestState(Enum):
    """States of a request."""
    PENDING = "pending"
    WAITING = "waiting"
    CONNECTED = "connected"
    ABANDONED = "abandoned"
    COMPLETED = "completed"


TERMINAL_STATES = frozenset({RequestState.ABANDONED, RequestState.COMPLETED})


class Request:
    """One unit of work issued by a client profile.

    ``generation`` is bumped on every transition; events scheduled for the
    request remember the generation they were created under, so an abandon
    event that outlives a connection is recognised as stale when popped.
    """

    __slots__ = (
        "request_id", "profile", "arrival_tick", "handle_ticks", "abandon_ticks",
        "state", "generation", "connect_tick", "end_tick", "server_id",
    )

    def __init__(self, request_id: int, profile: "ClientProfile", arrival_tick: Tick,
                 handle_ticks: Tick, abandon_ticks: Tick):
        if arrival_tick < 0:
            raise ValueError("Arrival tick cannot be negative")
        self.request_id = request_id
        self.profile = profile
        self.arrival_tick = arrival_tick
        self.handle_ticks = handle_ticks
        self.abandon_ticks = abandon_ticks

        self.state = RequestState.PENDING
        self.generation = 0
        self.connect_tick: Optional[Tick] = None
        self.end_tick: Optional[Tick] = None
        self.server_id: Optional[int] = None

    @classmethod
    def from_profile(cls, request_id: int, profile: "ClientProfile", arrival_tick: Tick,
                     clock: TickClock) -> "Request":
        """Instantiate a request from a client profile, converting durations to ticks."""
        return cls(
            request_id=request_id,
            profile=profile,
            arrival_tick=arrival_tick,
            handle_ticks=clock.to_ticks(profile.handle_time),
            abandon_ticks=clock.to_ticks(profile.abandon_time),
        )

    @property
    def required_attributes(self) -> AttributeSet:
        return self.profile.required_attributes

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def arrive(self, tick: Tick) -> Tick:
        """Pending -> Waiting.

        Returns:
            Tick at which the request abandons if still waiting
        """
        if tick < self.arrival_tick:
            raise InvariantViolationError(
                f"Arrival processed before its due tick {self.arrival_tick}",
                request_id=self.request_id, tick=tick, transition="arrive",
            )
        self._transition(RequestState.PENDING, RequestState.WAITING, tick, "arrive")
        return tick + self.abandon_ticks

    def connect(self, tick: Tick, server_id: int) -> Tick:
        """Waiting -> Connected.

        Returns:
            Tick at which handling completes
        """
        self._transition(RequestState.WAITING, RequestState.CONNECTED, tick, "connect")
        self.connect_tick = tick
        self.server_id = server_id
        return tick + self.handle_ticks

    def abandon(self, tick: Tick) -> None:
        """Waiting -> Abandoned."""
        self._transition(RequestState.WAITING, RequestState.ABANDONED, tick, "abandon")
        self.end_tick = tick

    def complete(self, tick: Tick) -> None:
        """Connected -> Completed."""
        self._transition(RequestState.CONNECTED, RequestState.COMPLETED, tick, "complete")
        self.end_tick = tick

    def waited(self, tick: Tick) -> Tick:
        """Ticks spent waiting so far, as seen at ``tick``."""
        return tick - self.arrival_tick

    def wait_time(self) -> Optional[Tick]:
        """Ticks between arrival and connection (or abandonment)."""
        if self.connect_tick is not None:
            return self.connect_tick - self.arrival_tick
        if self.state == RequestState.ABANDONED:
            return self.end_tick - self.arrival_tick
        return None

    def handle_time(self) -> Optional[Tick]:
        """Ticks between connection and completion, for completed requests."""
        if self.state != RequestState.COMPLETED:
            return None
        return self.end_tick - self.connect_tick

    def _transition(self, expected: RequestState, new: RequestState, tick: Tick,
                    name: str) -> None:
        if self.state != expected:
            raise InvariantViolationError(
                f"Cannot {name} a request in state {self.state.value}",
                request_id=self.request_id, server_id=self.server_id, tick=tick,
                transition=f"{self.state.value}->{new.value}",
            )
        self.state = new
        self.generation += 1

    def __repr__(self) -> str:
        return (f"Request(id={self.request_id}, state={self.state.value}, "
                f"arrival={self.arrival_tick})")
