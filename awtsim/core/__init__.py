"""Core simulation components."""

from .errors import (ConfigurationError, InvariantViolationError, ResourceLimitError,
                     SimulationError, SimulationStateError)
from .clock import Tick, TickClock
from .attributes import Attribute, AttributeSet
from .event_queue import Event, EventType, EventQueue
from .request import Request, RequestState
from .server_pool import Server, ServerPool
from .router import BestFitHoldPolicy, ImmediateMatchPolicy, Router, RoutingPolicy
from .lifecycle import EventSink, InMemoryEventSink, LifecycleEvent, TransitionKind
from .metrics_collector import MetricDefinition, MetricsCollector, MetricType
from .simulator import Simulator

__all__ = [
    "ConfigurationError",
    "InvariantViolationError",
    "ResourceLimitError",
    "SimulationError",
    "SimulationStateError",
    "Tick",
    "TickClock",
    "Attribute",
    "AttributeSet",
    "Event",
    "EventType",
    "EventQueue",
    "Request",
    "RequestState",
    "Server",
    "ServerPool",
    "BestFitHoldPolicy",
    "ImmediateMatchPolicy",
    "Router",
    "RoutingPolicy",
    "EventSink",
    "InMemoryEventSink",
    "LifecycleEvent",
    "TransitionKind",
    "MetricDefinition",
    "MetricsCollector",
    "MetricType",
    "Simulator",
]
