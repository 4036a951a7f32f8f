"""awtsim: discrete-event contact center simulator."""

from .core.simulator import Simulator
from .core.event_queue import Event, EventType, EventQueue
from .core.metrics_collector import MetricDefinition, MetricsCollector, MetricType
from .models.simulation_config import ClientProfile, ServerProfile, SimulationConfig
from .orchestration.orchestrator import Orchestrator, aggregate_outcomes
from .utils.logger import setup_logger

__version__ = "0.1.0"
__all__ = [
    "Simulator",
    "Event",
    "EventType",
    "EventQueue",
    "MetricDefinition",
    "MetricsCollector",
    "MetricType",
    "ClientProfile",
    "ServerProfile",
    "SimulationConfig",
    "Orchestrator",
    "aggregate_outcomes",
    "setup_logger",
]
