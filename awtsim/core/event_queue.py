"""Event queue implementation for the tick-driven simulation."""

import heapq
import itertools
from enum import Enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from .request import Request


class EventType(Enum):
    """Types of events in the simulation."""
    REQUEST_ARRIVAL = "request_arrival"
    REQUEST_ABANDON = "request_abandon"
    SERVICE_COMPLETION = "service_completion"


@dataclass(frozen=True)
class Event:
    """Event in the discrete event simulation.

    Attributes:
        time: Tick at which the event is due
        event_type: Type of event
        request: Request the event refers to
        generation: Request generation when the event was scheduled; a
            mismatch at pop time marks the event as stale
    """
    time: int
    event_type: EventType
    request: Optional["Request"] = field(default=None, repr=False)
    generation: int = 0

    def __post_init__(self):
        """Validate event after initialization."""
        if self.time < 0:
            raise ValueError("Event time cannot be negative")

    @property
    def request_id(self) -> Optional[int]:
        """Identity of the subject request, if any."""
        return self.request.request_id if self.request is not None else None


class EventQueue:
    """Priority queue for managing simulation events.

    Events are ordered by due tick. Events due at the same tick come out in
    insertion order, which keeps routing decisions reproducible. The queue
    never cancels events; consumers discard stale ones when they pop them.
    """

    def __init__(self):
        """Initialize empty event queue."""
        self._queue: List[Tuple[int, int, Event]] = []
        self._sequence = itertools.count()
        self._event_count = 0

    def push(self, event: Event) -> None:
        """Add event to the queue.

        Args:
            event: Event to add
        """
        heapq.heappush(self._queue, (event.time, next(self._sequence), event))
        self._event_count += 1

    def pop(self) -> Event:
        """Remove and return the next event.

        Returns:
            Next event to process

        Raises:
            IndexError: If queue is empty
        """
        if self.is_empty():
            raise IndexError("Cannot pop from empty event queue")
        return heapq.heappop(self._queue)[2]

    def pop_due(self, current_time: int) -> List[Event]:
        """Remove and return every event due at or before ``current_time``.

        Args:
            current_time: Current simulation tick

        Returns:
            Due events in non-decreasing due order, FIFO within a tick
        """
        due = []
        while self._queue and self._queue[0][0] <= current_time:
            due.append(heapq.heappop(self._queue)[2])
        return due

    def peek(self) -> Optional[Event]:
        """Return the next event without removing it.

        Returns:
            Next event, or None if queue is empty
        """
        return self._queue[0][2] if self._queue else None

    def peek_next_due(self) -> Optional[int]:
        """Return the smallest due tick, or None if queue is empty."""
        return self._queue[0][0] if self._queue else None

    def is_empty(self) -> bool:
        """Check if queue is empty."""
        return len(self._queue) == 0

    def size(self) -> int:
        """Get number of events in queue."""
        return len(self._queue)

    @property
    def total_pushed(self) -> int:
        """Number of events ever pushed onto this queue."""
        return self._event_count

    def clear(self) -> None:
        """Remove all events from queue."""
        self._queue.clear()

    def __len__(self) -> int:
        """Get number of events in queue."""
        return len(self._queue)

    def __repr__(self) -> str:
        """String representation of event queue."""
        return f"EventQueue(size={len(self._queue)}, next={self.peek_next_due()})"
