"""Parsed simulation configuration."""

import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..core.attributes import AttributeSet
from ..core.clock import TickClock
from ..core.errors import ConfigurationError, ResourceLimitError
from ..core.metrics_collector import MetricDefinition, parse_duration
from ..core.router import ROUTING_POLICIES
from ..workload.arrival_process import ARRIVAL_PROCESSES


@dataclass(frozen=True)
class ClientProfile:
    """Template for the requests issued by one kind of client.

    Attributes:
        name: Profile name, reported on lifecycle events
        handle_time: Service duration in seconds
        abandon_time: Patience in seconds before a waiting request abandons
        quantity: Number of requests generated per replicate
        required_attributes: Attributes a server must offer
        clean_up_time: Post-service duration in seconds (carried, not simulated)
    """
    name: str
    handle_time: float
    abandon_time: float
    quantity: int = 1
    required_attributes: AttributeSet = field(default_factory=AttributeSet)
    clean_up_time: float = 0.0


@dataclass(frozen=True)
class ServerProfile:
    """Template for a group of identical servers."""
    name: str
    quantity: int = 1
    attributes: AttributeSet = field(default_factory=AttributeSet)


@dataclass(frozen=True)
class ResourceLimits:
    """Upper bounds checked before any replicate runs."""
    max_requests: int = 1_000_000
    max_servers: int = 100_000
    max_ticks: int = 100_000_000


@dataclass(frozen=True)
class SimulationConfig:
    """Fully parsed configuration consumed by the orchestrator.

    Build it with :meth:`from_dict`, which validates every section and reports
    all problems at once.
    """
    tick_size: float
    tick_until: float
    clients: Tuple[ClientProfile, ...]
    servers: Tuple[ServerProfile, ...]
    metrics: Tuple[MetricDefinition, ...] = ()
    simulations: int = 1
    seed: Optional[int] = None
    rng_seeds: Optional[Tuple[int, ...]] = None
    arrival_process: str = 'poisson'
    routing: Dict[str, Any] = field(default_factory=dict)
    max_workers: Optional[int] = None
    deadline: Optional[float] = None
    limits: ResourceLimits = field(default_factory=ResourceLimits)

    @property
    def clock(self) -> TickClock:
        return TickClock(self.tick_size, self.tick_until)

    @property
    def total_requests(self) -> int:
        return sum(profile.quantity for profile in self.clients)

    @property
    def total_servers(self) -> int:
        return sum(profile.quantity for profile in self.servers)

    def validate_resources(self) -> None:
        """Check configured quantities against ``limits``.

        Raises:
            ResourceLimitError: If any limit is exceeded
        """
        errors = []
        if self.total_requests > self.limits.max_requests:
            errors.append(
                f"{self.total_requests} requests per replicate exceed max_requests "
                f"{self.limits.max_requests}"
            )
        if self.total_servers > self.limits.max_servers:
            errors.append(
                f"{self.total_servers} servers exceed max_servers {self.limits.max_servers}"
            )
        horizon = self.clock.horizon
        if horizon > self.limits.max_ticks:
            errors.append(f"Horizon of {horizon} ticks exceeds max_ticks {self.limits.max_ticks}")
        if errors:
            raise ResourceLimitError("Configuration exceeds resource limits", errors)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "SimulationConfig":
        """Parse a configuration dictionary.

        Args:
            config: Dictionary with ``simulation``, ``routing``, ``limits``,
                ``clients``, ``servers`` and ``metrics`` sections

        Returns:
            Parsed configuration

        Raises:
            ConfigurationError: Listing every invalid or missing field
        """
        errors: List[str] = []
        sim = _section(config, 'simulation', errors)

        simulations = _positive_int(sim.get('simulations', 1), 'simulation.simulations', errors)
        tick_size = _duration(sim.get('tick_size'), 'simulation.tick_size', errors)
        tick_until = _duration(sim.get('tick_until'), 'simulation.tick_until', errors)
        if tick_size is not None and tick_size <= 0:
            errors.append("simulation.tick_size must be positive")
            tick_size = None

        seed = sim.get('seed')
        if seed is not None and not _is_seed(seed):
            errors.append(f"simulation.seed must be a non-negative integer, got {seed!r}")
        rng_seeds = sim.get('rng_seeds')
        if rng_seeds is not None:
            if seed is not None:
                errors.append("simulation.seed and simulation.rng_seeds are mutually exclusive")
            if not isinstance(rng_seeds, (list, tuple)) or not all(_is_seed(s) for s in rng_seeds):
                errors.append("simulation.rng_seeds must be a list of non-negative integers")
            elif simulations is not None and len(rng_seeds) != simulations:
                errors.append("There should be as many rng_seeds as simulations")
            else:
                rng_seeds = tuple(int(s) for s in rng_seeds)

        arrival_process = sim.get('arrival_process', 'poisson')
        if arrival_process not in ARRIVAL_PROCESSES:
            errors.append(
                f"simulation.arrival_process must be one of {', '.join(ARRIVAL_PROCESSES)}, "
                f"got {arrival_process!r}"
            )

        max_workers = sim.get('max_workers')
        if max_workers is not None:
            max_workers = _positive_int(max_workers, 'simulation.max_workers', errors)
        deadline = sim.get('deadline')
        if deadline is not None:
            deadline = _duration(deadline, 'simulation.deadline', errors)

        routing = dict(_section(config, 'routing', errors))
        policy = routing.setdefault('policy', 'immediate')
        if policy not in ROUTING_POLICIES:
            errors.append(
                f"routing.policy must be one of {', '.join(ROUTING_POLICIES)}, got {policy!r}"
            )
        elif policy == 'best_fit':
            if routing.get('max_extra_wait') is None:
                errors.append("routing.max_extra_wait is required for the best_fit policy")
            else:
                routing['max_extra_wait'] = _duration(
                    routing['max_extra_wait'], 'routing.max_extra_wait', errors
                )

        limits = _parse_limits(_section(config, 'limits', errors), errors)
        clients = _parse_list(config, 'clients', _parse_client, errors)
        servers = _parse_list(config, 'servers', _parse_server, errors)
        metrics = _parse_list(config, 'metrics', _parse_metric, errors, required=False)

        if errors:
            raise ConfigurationError("Invalid simulation configuration", errors)

        return cls(
            tick_size=tick_size,
            tick_until=tick_until,
            clients=tuple(clients),
            servers=tuple(servers),
            metrics=tuple(metrics),
            simulations=simulations,
            seed=int(seed) if seed is not None else None,
            rng_seeds=rng_seeds,
            arrival_process=arrival_process,
            routing=routing,
            max_workers=max_workers,
            deadline=deadline,
            limits=limits,
        )


def _section(config: Mapping[str, Any], name: str, errors: List[str]) -> Mapping[str, Any]:
    value = config.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        errors.append(f"Section {name} must be a mapping")
        return {}
    return value


def _is_seed(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool) and value >= 0


def _positive_int(value: Any, name: str, errors: List[str]) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 1:
        errors.append(f"{name} must be a positive integer, got {value!r}")
        return None
    return int(value)


def _duration(value: Any, name: str, errors: List[str]) -> Optional[float]:
    if value is None:
        errors.append(f"{name} is required")
        return None
    try:
        return parse_duration(value)
    except ConfigurationError as e:
        errors.append(f"{name}: {e}")
        return None


def _parse_list(config: Mapping[str, Any], name: str, parser, errors: List[str],
                required: bool = True) -> list:
    entries = config.get(name)
    if entries is None or entries == []:
        if required:
            errors.append(f"At least one entry is required in {name}")
        return []
    if not isinstance(entries, list):
        errors.append(f"{name} must be a list")
        return []

    parsed = []
    for index, entry in enumerate(entries):
        where = f"{name}[{index}]"
        if not isinstance(entry, Mapping):
            errors.append(f"{where} must be a mapping")
            continue
        try:
            parsed.append(parser(entry, index))
        except ConfigurationError as e:
            errors.extend(f"{where}: {problem}" for problem in (e.errors or [str(e)]))
    return parsed


def _parse_client(entry: Mapping[str, Any], index: int) -> ClientProfile:
    errors: List[str] = []
    handle_time = _duration(entry.get('handle_time'), 'handle_time', errors)
    abandon_time = _duration(entry.get('abandon_time'), 'abandon_time', errors)
    clean_up_time = _duration(entry.get('clean_up_time', 0), 'clean_up_time', errors)
    quantity = entry.get('quantity')
    if isinstance(quantity, bool) or not isinstance(quantity, numbers.Integral) or quantity < 0:
        errors.append(f"quantity must be a non-negative integer, got {quantity!r}")
    try:
        required = AttributeSet.from_config(entry.get('required_attributes'))
    except ConfigurationError as e:
        errors.append(str(e))
    if errors:
        raise ConfigurationError("Invalid client", errors)

    return ClientProfile(
        name=str(entry.get('name', f"client-{index}")),
        handle_time=handle_time,
        abandon_time=abandon_time,
        quantity=int(quantity),
        required_attributes=required,
        clean_up_time=clean_up_time,
    )


def _parse_server(entry: Mapping[str, Any], index: int) -> ServerProfile:
    errors: List[str] = []
    quantity = entry.get('quantity')
    if isinstance(quantity, bool) or not isinstance(quantity, numbers.Integral) or quantity < 0:
        errors.append(f"quantity must be a non-negative integer, got {quantity!r}")
    try:
        attributes = AttributeSet.from_config(entry.get('attributes'))
    except ConfigurationError as e:
        errors.append(str(e))
    if errors:
        raise ConfigurationError("Invalid server", errors)

    return ServerProfile(
        name=str(entry.get('name', f"server-{index}")),
        quantity=int(quantity),
        attributes=attributes,
    )


def _parse_metric(entry: Mapping[str, Any], index: int) -> MetricDefinition:
    return MetricDefinition.from_dict(entry)


def _parse_limits(section: Mapping[str, Any], errors: List[str]) -> ResourceLimits:
    defaults = ResourceLimits()
    values = {}
    for name in ('max_requests', 'max_servers', 'max_ticks'):
        if name in section:
            value = _positive_int(section[name], f"limits.{name}", errors)
            values[name] = value if value is not None else getattr(defaults, name)
    return ResourceLimits(**values)
