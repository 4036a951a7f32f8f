"""Tick scheduler driving one replicate of the queueing simulation."""

import time
from typing import TYPE_CHECKING, Dict, List, Optional

from .attributes import AttributeSet
from .clock import Tick, TickClock
from .errors import InvariantViolationError, SimulationStateError
from .event_queue import Event, EventQueue, EventType
from .lifecycle import EventSink, FanOutSink, LifecycleEvent, TransitionKind
from .metrics_collector import MetricsCollector
from .request import Request, RequestState
from .router import Router, RoutingPolicy
from .server_pool import Server, ServerPool
from ..utils.logger import setup_logger

if TYPE_CHECKING:
    from ..models.simulation_config import ClientProfile, ServerProfile


class Simulator:
    """Discrete, tick-driven simulator for one replicate.

    Each processed tick pops every due event, applies the resulting request
    transitions, runs one routing pass and then jumps to the next tick that
    can change anything:

    - while requests wait under a time-sensitive routing policy, the next tick;
    - otherwise the next due event (a time-insensitive policy cannot change
      its decision before some event fires).

    The run ends at the horizon tick or when nothing is pending.
    """

    def __init__(self, clock: TickClock, routing_policy: Optional[RoutingPolicy] = None,
                 event_sink: Optional[EventSink] = None,
                 metrics_collector: Optional[MetricsCollector] = None,
                 trace_ticks: bool = False):
        """Initialize simulator.

        Args:
            clock: Tick size and horizon of the run
            routing_policy: Policy used by the router, immediate match when omitted
            event_sink: Receives every lifecycle event
            metrics_collector: Receives every lifecycle event; its metrics are
                included in the results
            trace_ticks: Record every processed tick in ``visited_ticks``
        """
        self.clock = clock
        self.horizon = clock.horizon
        self.logger = setup_logger(self.__class__.__name__)

        # Simulation state
        self.current_time: Tick = 0
        self.event_queue = EventQueue()
        self.pool = ServerPool(self.event_queue)
        self.router = Router(self.pool, routing_policy)

        self.metrics_collector = metrics_collector
        sinks = [s for s in (event_sink, metrics_collector) if s is not None]
        self.event_sink: Optional[EventSink] = FanOutSink(sinks) if sinks else None

        self.requests: List[Request] = []
        self.waiting: Dict[int, Request] = {}

        # Statistics
        self.trace_ticks = trace_ticks
        self.visited_ticks: List[Tick] = []
        self.ticks_processed = 0
        self.stale_events = 0
        self.lifecycle_events = 0

        self._enabled = False
        self._finished = False

        self._handlers = {
            EventType.REQUEST_ARRIVAL: self._handle_request_arrival,
            EventType.REQUEST_ABANDON: self._handle_request_abandon,
            EventType.SERVICE_COMPLETION: self._handle_service_completion,
        }

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def is_finished(self) -> bool:
        return self._finished

    def add_server(self, attributes: AttributeSet, profile_name: str = "") -> Server:
        """Add one idle server. Only allowed before ``enable()``."""
        self._check_not_enabled("add a server")
        return self.pool.add_server(attributes, profile_name)

    def add_server_profile(self, profile: "ServerProfile") -> List[Server]:
        """Add ``profile.quantity`` servers built from a server profile."""
        return [self.add_server(profile.attributes, profile.name) for _ in range(profile.quantity)]

    def add_request(self, request: Request) -> Request:
        """Add a pending request and schedule its arrival. Only allowed before ``enable()``."""
        self._check_not_enabled("add a request")
        if request.state != RequestState.PENDING:
            raise InvariantViolationError(
                "Only pending requests can be added",
                request_id=request.request_id, transition="add",
            )
        self.requests.append(request)
        self.schedule(Event(
            time=request.arrival_tick,
            event_type=EventType.REQUEST_ARRIVAL,
            request=request,
            generation=request.generation,
        ))
        return request

    def add_client(self, profile: "ClientProfile", arrival_tick: Tick) -> Request:
        """Create a request from a client profile, with the next sequential id."""
        request = Request.from_profile(len(self.requests), profile, arrival_tick, self.clock)
        return self.add_request(request)

    def enable(self) -> None:
        """Freeze the population and allow ticking.

        Raises:
            SimulationStateError: If the simulation is already enabled
        """
        if self._enabled:
            raise SimulationStateError("Simulation is already enabled")
        self._enabled = True

        beyond = sum(1 for r in self.requests if r.arrival_tick > self.horizon)
        if beyond:
            self.logger.warning(f"{beyond} requests arrive after the horizon tick {self.horizon}")

        self.logger.debug(
            f"Simulation enabled: {len(self.requests)} requests, {len(self.pool)} servers, "
            f"horizon {self.horizon}"
        )

    def schedule(self, event: Event) -> None:
        """Push an event, refusing anything due before the current tick."""
        if event.time < self.current_time:
            raise InvariantViolationError(
                f"Cannot schedule {event.event_type.value} in the past (due {event.time})",
                request_id=event.request_id, tick=self.current_time,
            )
        self.event_queue.push(event)

    def tick(self) -> bool:
        """Process the current tick and advance to the next one.

        Returns:
            True while the run can continue

        Raises:
            SimulationStateError: If the simulation has not been enabled
        """
        if not self._enabled:
            raise SimulationStateError("Simulation must be enabled before ticking")
        if self._finished:
            return False
        if self.current_time > self.horizon or self.is_exhausted():
            self._finished = True
            return False

        self._process_tick()

        next_time = self._next_time()
        if next_time is None or next_time > self.horizon:
            self._finished = True
            return False

        self.current_time = next_time
        return True

    def is_exhausted(self) -> bool:
        """True when no events are pending and no request is waiting or being served."""
        return self.event_queue.is_empty() and not self.waiting and self.pool.busy_count() == 0

    def run(self) -> Dict:
        """Run the simulation to the horizon or exhaustion.

        Returns:
            Dictionary containing simulation results and metrics
        """
        start_time = time.time()
        if not self._enabled:
            self.enable()

        while self.tick():
            pass

        results = self._finalize()

        elapsed_time = time.time() - start_time
        self.logger.debug(
            f"Simulation completed in {elapsed_time:.3f}s "
            f"({self.ticks_processed} ticks, final tick {self.current_time})"
        )
        return results

    def _process_tick(self) -> None:
        """Drain due events and route until nothing more is due at this tick.

        Every due transition is applied before the routing pass, abandonments
        included. The one exception is a request with zero patience that
        arrived at this tick: it takes part in one routing pass and abandons
        after it if still waiting. A zero-length service completes within the
        tick it connected in.
        """
        while True:
            arrived_expiring = []
            due = self.event_queue.pop_due(self.current_time)
            while due:
                for event in due:
                    if (event.event_type == EventType.REQUEST_ABANDON
                            and event.request.arrival_tick == self.current_time):
                        arrived_expiring.append(event)
                    else:
                        self._process_event(event)
                due = self.event_queue.pop_due(self.current_time)

            self._route()

            for event in arrived_expiring:
                self._process_event(event)

            next_due = self.event_queue.peek_next_due()
            if next_due is None or next_due > self.current_time:
                break

        self.ticks_processed += 1
        if self.trace_ticks:
            self.visited_ticks.append(self.current_time)

    def _next_time(self) -> Optional[Tick]:
        if self.waiting and self.router.time_sensitive:
            return self.current_time + 1
        next_due = self.event_queue.peek_next_due()
        if next_due is None:
            return None
        return max(self.current_time + 1, next_due)

    def _process_event(self, event: Event) -> None:
        """Process a single event.

        Args:
            event: Event to process
        """
        if event.time > self.current_time:
            raise InvariantViolationError(
                f"Event due at {event.time} delivered early",
                request_id=event.request_id, tick=self.current_time,
            )

        handler = self._handlers.get(event.event_type)
        if handler is None:
            raise InvariantViolationError(f"No handler for event type {event.event_type}")
        handler(event)

    def _is_stale(self, event: Event, expected: RequestState) -> bool:
        request = event.request
        if event.generation != request.generation or request.state != expected:
            self.stale_events += 1
            self.logger.debug(
                f"Discarding stale {event.event_type.value} for request {request.request_id}"
            )
            return True
        return False

    def _handle_request_arrival(self, event: Event) -> None:
        """Handle request arrival: start waiting and schedule abandonment."""
        if self._is_stale(event, RequestState.PENDING):
            return
        request = event.request
        abandon_tick = request.arrive(self.current_time)
        self.waiting[request.request_id] = request
        self._emit(TransitionKind.ARRIVED, request)

        self.schedule(Event(
            time=abandon_tick,
            event_type=EventType.REQUEST_ABANDON,
            request=request,
            generation=request.generation,
        ))

    def _handle_request_abandon(self, event: Event) -> None:
        """Handle abandonment of a request still waiting."""
        if self._is_stale(event, RequestState.WAITING):
            return
        request = event.request
        request.abandon(self.current_time)
        del self.waiting[request.request_id]

        wait = request.wait_time()
        self._emit(TransitionKind.ABANDONED, request, wait_time=wait, time_in_queue=wait)

    def _handle_service_completion(self, event: Event) -> None:
        """Handle completion: free the server and close the request."""
        if self._is_stale(event, RequestState.CONNECTED):
            return
        request = event.request
        server = self.pool.get_server(request.server_id)
        released = self.pool.release(server)
        if released is not request:
            raise InvariantViolationError(
                f"Server was serving request {released.request_id}",
                request_id=request.request_id, server_id=server.server_id,
                tick=self.current_time, transition="complete",
            )
        request.complete(self.current_time)
        self._emit(TransitionKind.COMPLETED, request, handle_time=request.handle_time())

    def _route(self) -> None:
        if not self.waiting:
            return
        for request, server in self.router.route(self.waiting.values(), self.current_time):
            completion_tick = request.connect(self.current_time, server.server_id)
            del self.waiting[request.request_id]
            self.pool.assign(server, request, completion_tick)

            wait = request.wait_time()
            self._emit(TransitionKind.CONNECTED, request, wait_time=wait, time_in_queue=wait)

    def _emit(self, kind: TransitionKind, request: Request, **details) -> None:
        self.lifecycle_events += 1
        if self.event_sink is None:
            return
        self.event_sink.record(LifecycleEvent(
            request_id=request.request_id,
            kind=kind,
            tick=self.current_time,
            server_id=request.server_id,
            profile=request.profile.name,
            **details,
        ))

    def _check_not_enabled(self, action: str) -> None:
        if self._enabled:
            raise SimulationStateError(f"Cannot {action} after the simulation is enabled")

    def _finalize(self) -> Dict:
        """Compute results of the run.

        Returns:
            Dictionary containing request totals, run statistics and metrics
        """
        state_counts = {state.value: 0 for state in RequestState}
        for request in self.requests:
            state_counts[request.state.value] += 1

        results = {
            'total_requests': len(self.requests),
            'total_servers': len(self.pool),
            'requests_by_state': state_counts,
            'final_tick': self.current_time,
            'horizon': self.horizon,
            'ticks_processed': self.ticks_processed,
            'stale_events': self.stale_events,
            'lifecycle_events': self.lifecycle_events,
            'total_events': self.event_queue.total_pushed,
            'exhausted': self.is_exhausted(),
        }

        if self.metrics_collector is not None:
            results.update(self.metrics_collector.compute_metrics())

        return results
