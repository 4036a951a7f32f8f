"""Lifecycle events emitted by the scheduler and the sinks that consume them."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from dataclasses_json import dataclass_json


class TransitionKind(Enum):
    """Request transitions reported to event sinks."""
    ARRIVED = "arrived"
    CONNECTED = "connected"
    ABANDONED = "abandoned"
    COMPLETED = "completed"


@dataclass_json
@dataclass(frozen=True)
class LifecycleEvent:
    """Record of one request transition.

    Attributes:
        request_id: Request identity within its replicate
        kind: Transition that occurred
        tick: Tick of occurrence
        wait_time: Ticks from arrival to connection or abandonment
        handle_time: Ticks from connection to completion
        time_in_queue: Ticks spent waiting for a server
        server_id: Server involved, for connections and completions
        profile: Name of the client profile that issued the request
    """
    request_id: int
    kind: TransitionKind
    tick: int
    wait_time: Optional[int] = None
    handle_time: Optional[int] = None
    time_in_queue: Optional[int] = None
    server_id: Optional[int] = None
    profile: Optional[str] = None


class EventSink(ABC):
    """Consumer of lifecycle events.

    The scheduler delivers every transition exactly once, in non-decreasing
    tick order within a replicate.
    """

    @abstractmethod
    def record(self, event: LifecycleEvent) -> None:
        """Consume one lifecycle event."""
        pass


@dataclass
class InMemoryEventSink(EventSink):
    """Keeps every event in a list, for tests and event-log export."""

    events: List[LifecycleEvent] = field(default_factory=list)

    def record(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: TransitionKind) -> List[LifecycleEvent]:
        return [e for e in self.events if e.kind == kind]

    def __len__(self) -> int:
        return len(self.events)


class FanOutSink(EventSink):
    """Forwards each event to several sinks, in order."""

    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)

    def record(self, event: LifecycleEvent) -> None:
        for sink in self.sinks:
            sink.record(event)
