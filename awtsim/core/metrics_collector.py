"""Metrics collection and aggregation."""

import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from .clock import TickClock
from .errors import ConfigurationError, InvariantViolationError
from .lifecycle import EventSink, LifecycleEvent, TransitionKind
from ..utils.logger import setup_logger


class MetricType(Enum):
    """Service quality metrics computed from lifecycle events."""
    SERVICE_LEVEL = "ServiceLevel"
    AVERAGE_WORK_TIME = "AverageWorkTime"
    AVERAGE_SPEED_ANSWER = "AverageSpeedAnswer"
    AVERAGE_TIME_TO_ABANDON = "AverageTimeToAbandon"
    AVERAGE_TIME_IN_QUEUE = "AverageTimeInQueue"
    ABANDON_RATE = "AbandonRate"
    ANSWER_COUNT = "AnswerCount"
    UTILISATION_TIME = "UtilisationTime"

    @classmethod
    def parse(cls, name: str) -> "MetricType":
        """Look up a metric by its configured name (``AbandonRate`` or ``abandon_rate``)."""
        key = str(name).replace("_", "").lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ConfigurationError(f"Unknown metric: {name}")


class TargetCondition(Enum):
    """How a metric value is compared with its target."""
    LESS_OR_EQUAL = "<="
    GREATER_OR_EQUAL = ">="
    EQUAL = "=="


DURATION_METRICS = frozenset({
    MetricType.AVERAGE_WORK_TIME,
    MetricType.AVERAGE_SPEED_ANSWER,
    MetricType.AVERAGE_TIME_TO_ABANDON,
    MetricType.AVERAGE_TIME_IN_QUEUE,
})

FRACTION_METRICS = frozenset({MetricType.SERVICE_LEVEL, MetricType.ABANDON_RATE})


def parse_duration(value: Any) -> float:
    """Parse a duration in seconds from a number or a ``{secs, nanos}`` mapping.

    Raises:
        ConfigurationError: If the value is not a non-negative duration
    """
    if isinstance(value, Mapping) and 'secs' in value:
        seconds = value['secs'] + value.get('nanos', 0) / 1e9
    elif isinstance(value, numbers.Real) and not isinstance(value, bool):
        seconds = float(value)
    else:
        raise ConfigurationError(f"Expected a duration in seconds, got {value!r}")
    if seconds < 0:
        raise ConfigurationError(f"Durations cannot be negative, got {value!r}")
    return seconds


@dataclass(frozen=True)
class MetricDefinition:
    """Declarative description of one metric and its target.

    Attributes:
        metric: Metric kind
        target: Target value (fraction, seconds or count depending on the kind)
        sla: Service level window in seconds, ServiceLevel only
    """
    metric: MetricType
    target: Union[float, int]
    sla: Optional[float] = None

    @property
    def label(self) -> str:
        if self.sla is not None:
            return f"{self.metric.value}({self.sla:g}s)"
        return self.metric.value

    @property
    def condition(self) -> TargetCondition:
        if self.metric == MetricType.ANSWER_COUNT:
            return TargetCondition.EQUAL
        if self.metric == MetricType.SERVICE_LEVEL:
            return TargetCondition.GREATER_OR_EQUAL
        return TargetCondition.LESS_OR_EQUAL

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "MetricDefinition":
        """Build a definition from a ``{metric, sla, target}`` mapping.

        Raises:
            ConfigurationError: If the definition is incomplete or inconsistent
        """
        if 'metric' not in config:
            raise ConfigurationError(f"Metric definition requires a metric name: {dict(config)}")
        metric = MetricType.parse(config['metric'])

        if metric == MetricType.UTILISATION_TIME:
            raise ConfigurationError(f"Metric {metric.value} is not yet implemented")

        target = config.get('target')
        if target is None:
            raise ConfigurationError(f"Target is required for {metric.value}")

        sla = None
        if metric == MetricType.SERVICE_LEVEL:
            if config.get('sla') is None:
                raise ConfigurationError("ServiceLevel requires a window specified by a sla key")
            sla = parse_duration(config['sla'])

        if metric in FRACTION_METRICS:
            if isinstance(target, bool) or not isinstance(target, numbers.Real):
                raise ConfigurationError(f"Target should be a floating point number, got {target!r}")
            if not 0.0 <= target <= 1.0:
                raise ConfigurationError(
                    f"{metric.value} requires a target in the range of 0.0..1.0. Received {target}"
                )
            target = float(target)
        elif metric in DURATION_METRICS:
            target = parse_duration(target)
        else:
            if isinstance(target, bool) or not isinstance(target, numbers.Integral) or target < 0:
                raise ConfigurationError(
                    f"{metric.value} requires a non-negative integer target, got {target!r}"
                )
            target = int(target)

        return cls(metric=metric, target=target, sla=sla)


class MetricsCollector(EventSink):
    """Accumulates lifecycle events into service quality metrics.

    Durations are kept in ticks and converted to seconds on output. Two
    collectors can be merged; merging is commutative and associative.
    """

    def __init__(self, definitions: Sequence[MetricDefinition], clock: TickClock,
                 percentiles: Iterable[float] = (50, 90, 95, 99)):
        """Initialize metrics collector.

        Args:
            definitions: Metrics to evaluate
            clock: Clock of the replicate(s) feeding this collector
            percentiles: Percentiles reported for wait and handle times
        """
        self.definitions = list(definitions)
        self.clock = clock
        self.percentiles = list(percentiles)
        self.logger = setup_logger(self.__class__.__name__)

        self.counts = {kind: 0 for kind in TransitionKind}
        self.connect_waits: List[int] = []
        self.abandon_waits: List[int] = []
        self.handle_times: List[int] = []
        self.last_tick = 0

    def record(self, event: LifecycleEvent) -> None:
        """Accumulate one lifecycle event."""
        if event.tick < self.last_tick:
            raise InvariantViolationError(
                f"Lifecycle event delivered out of order (previous tick {self.last_tick})",
                request_id=event.request_id, tick=event.tick, transition=event.kind.value,
            )
        self.last_tick = event.tick
        self.counts[event.kind] += 1

        if event.kind == TransitionKind.CONNECTED:
            self.connect_waits.append(event.wait_time)
        elif event.kind == TransitionKind.ABANDONED:
            self.abandon_waits.append(event.wait_time)
        elif event.kind == TransitionKind.COMPLETED:
            self.handle_times.append(event.handle_time)

    def metric_value(self, definition: MetricDefinition) -> Optional[float]:
        """Current value of one metric, or None when it has no samples."""
        metric = definition.metric
        tick_size = self.clock.tick_size

        if metric == MetricType.SERVICE_LEVEL:
            if not self.connect_waits:
                return None
            sla_ticks = self.clock.to_ticks(definition.sla)
            return float(np.mean(np.asarray(self.connect_waits) <= sla_ticks))
        elif metric == MetricType.AVERAGE_WORK_TIME:
            return self._mean_seconds(self.handle_times)
        elif metric == MetricType.AVERAGE_SPEED_ANSWER:
            return self._mean_seconds(self.connect_waits)
        elif metric == MetricType.AVERAGE_TIME_TO_ABANDON:
            return self._mean_seconds(self.abandon_waits)
        elif metric == MetricType.AVERAGE_TIME_IN_QUEUE:
            return self._mean_seconds(self.connect_waits + self.abandon_waits)
        elif metric == MetricType.ABANDON_RATE:
            abandoned = self.counts[TransitionKind.ABANDONED]
            answered = self.counts[TransitionKind.CONNECTED]
            if abandoned + answered == 0:
                return None
            return abandoned / (abandoned + answered)
        elif metric == MetricType.ANSWER_COUNT:
            return self.counts[TransitionKind.CONNECTED]
        raise ConfigurationError(f"Metric {metric.value} is not yet implemented")

    @staticmethod
    def on_target(definition: MetricDefinition, value: Optional[float]) -> bool:
        """Whether ``value`` meets the definition's target."""
        if value is None:
            return False
        condition = definition.condition
        if condition == TargetCondition.LESS_OR_EQUAL:
            return value <= definition.target
        if condition == TargetCondition.GREATER_OR_EQUAL:
            return value >= definition.target
        return value == definition.target

    def compute_metrics(self) -> Dict:
        """Compute configured metrics and distribution statistics.

        Returns:
            Dictionary with a ``metrics`` entry keyed by metric label, transition
            counts, and mean/median/percentile statistics in seconds
        """
        results: Dict[str, Any] = {'metrics': {}}

        for definition in self.definitions:
            value = self.metric_value(definition)
            results['metrics'][definition.label] = {
                'metric': definition.metric.value,
                'value': value,
                'target': definition.target,
                'condition': definition.condition.value,
                'on_target': self.on_target(definition, value),
            }

        for kind, count in self.counts.items():
            results[f'{kind.value}_count'] = count

        if self.connect_waits:
            results.update(self._compute_distribution_metrics('speed_answer', self.connect_waits))
        if self.abandon_waits:
            results.update(self._compute_distribution_metrics('time_to_abandon', self.abandon_waits))
        if self.handle_times:
            results.update(self._compute_distribution_metrics('work_time', self.handle_times))

        return results

    def _compute_distribution_metrics(self, name: str, values: List[int]) -> Dict:
        """Compute distribution statistics for a metric.

        Args:
            name: Metric name
            values: Samples in ticks

        Returns:
            Dictionary with mean, median, std and percentiles in seconds
        """
        seconds = np.asarray(values, dtype=float) * self.clock.tick_size

        results = {
            f'mean_{name}': float(np.mean(seconds)),
            f'median_{name}': float(np.median(seconds)),
            f'std_{name}': float(np.std(seconds)),
            f'max_{name}': float(np.max(seconds)),
        }

        for p in self.percentiles:
            results[f'p{p:g}_{name}'] = float(np.percentile(seconds, p))

        return results

    def _mean_seconds(self, values: List[int]) -> Optional[float]:
        if not values:
            return None
        return float(np.mean(values)) * self.clock.tick_size

    def merge(self, other: "MetricsCollector") -> "MetricsCollector":
        """Return a new collector holding the samples of both collectors."""
        if other.clock != self.clock:
            raise ConfigurationError("Cannot merge metrics recorded with different clocks")
        merged = MetricsCollector(self.definitions, self.clock, self.percentiles)
        for kind in TransitionKind:
            merged.counts[kind] = self.counts[kind] + other.counts[kind]
        merged.connect_waits = sorted(self.connect_waits + other.connect_waits)
        merged.abandon_waits = sorted(self.abandon_waits + other.abandon_waits)
        merged.handle_times = sorted(self.handle_times + other.handle_times)
        merged.last_tick = max(self.last_tick, other.last_tick)
        return merged

    def get_summary(self) -> str:
        """Get human-readable summary of metrics.

        Returns:
            Formatted string with one line per configured metric
        """
        if not any(self.counts.values()):
            return "No metrics collected"

        summary = [
            "=== Metrics Summary ===",
            f"Arrived: {self.counts[TransitionKind.ARRIVED]}",
            f"Answered: {self.counts[TransitionKind.CONNECTED]}",
            f"Abandoned: {self.counts[TransitionKind.ABANDONED]}",
        ]
        for definition in self.definitions:
            value = self.metric_value(definition)
            shown = "None" if value is None else f"{value:.4g}"
            summary.append(
                f"{definition.label:<28} {shown:>10}  target {definition.condition.value} "
                f"{definition.target}  {'ok' if self.on_target(definition, value) else 'missed'}"
            )
        return "\n".join(summary)
