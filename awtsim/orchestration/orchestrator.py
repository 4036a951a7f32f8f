"""Replicate fan-out, seeding and cross-replicate aggregation."""

import math
import os
import time
from concurrent.futures import (FIRST_COMPLETED, Future, ProcessPoolExecutor,
                                ThreadPoolExecutor, wait)
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from dataclasses_json import dataclass_json
from scipy import stats
from tqdm import tqdm

from ..core.errors import ConfigurationError, SimulationError
from ..core.lifecycle import InMemoryEventSink
from ..core.metrics_collector import MetricsCollector
from ..core.router import create_routing_policy
from ..core.simulator import Simulator
from ..models.simulation_config import SimulationConfig
from ..utils.logger import setup_logger
from ..workload.request_generator import RequestGenerator

logger = setup_logger("Orchestrator")

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

EXECUTORS = ("process", "thread")


def derive_replicate_seeds(seed: Optional[int], count: int) -> List[int]:
    """Derive independent per-replicate seeds from one master seed.

    Args:
        seed: Master seed, or None to draw fresh entropy from the OS
        count: Number of replicates

    Returns:
        List of ``count`` 64-bit seeds
    """
    children = np.random.SeedSequence(seed).spawn(count)
    return [int(child.generate_state(1, dtype=np.uint64)[0]) for child in children]


@dataclass_json
@dataclass
class ReplicateOutcome:
    """Result of one replicate.

    Attributes:
        index: Replicate number
        seed: Seed of the replicate's random generator
        status: ``completed``, ``failed`` or ``skipped``
        results: Simulator results, for completed replicates
        error_type: Exception class name, for failed replicates
        error: Exception message, for failed replicates
        elapsed: Wall time of the replicate in seconds
        events: Serialised lifecycle events, when recording was requested
    """
    index: int
    seed: int
    status: str
    results: Optional[Dict[str, Any]] = None
    error_type: Optional[str] = None
    error: Optional[str] = None
    elapsed: float = 0.0
    events: Optional[List[Dict[str, Any]]] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_COMPLETED


def build_simulator(config: SimulationConfig, seed: int,
                    event_sink: Optional[InMemoryEventSink] = None) -> Simulator:
    """Build and enable a simulator populated for one replicate."""
    clock = config.clock
    rng = np.random.default_rng(seed)

    simulator = Simulator(
        clock,
        routing_policy=create_routing_policy(config.routing, clock),
        event_sink=event_sink,
        metrics_collector=MetricsCollector(config.metrics, clock),
    )
    for profile in config.servers:
        simulator.add_server_profile(profile)
    for request in RequestGenerator(config, rng).generate():
        simulator.add_request(request)

    simulator.enable()
    return simulator


def run_replicate(config: SimulationConfig, index: int, seed: int,
                  record_events: bool = False) -> ReplicateOutcome:
    """Run one replicate in isolation.

    A :class:`SimulationError` aborts only this replicate and is reported in
    the outcome.
    """
    start_time = time.time()
    try:
        sink = InMemoryEventSink() if record_events else None
        simulator = build_simulator(config, seed, sink)
        results = simulator.run()
    except SimulationError as e:
        logger.warning(f"Replicate {index} failed: {type(e).__name__}: {e}")
        return ReplicateOutcome(
            index=index, seed=seed, status=STATUS_FAILED,
            error_type=type(e).__name__, error=str(e), elapsed=time.time() - start_time,
        )

    events = None
    if sink is not None:
        events = [event.to_dict(encode_json=True) for event in sink.events]

    return ReplicateOutcome(
        index=index, seed=seed, status=STATUS_COMPLETED, results=results,
        elapsed=time.time() - start_time, events=events,
    )


class Orchestrator:
    """Runs the replicates of a configuration, in parallel where allowed.

    Each replicate owns its random generator, event queue, pool and requests;
    nothing mutable is shared. At most ``2 * max_workers`` replicates are in
    flight. Once ``deadline`` seconds have elapsed no new replicate starts;
    running ones finish and the rest are reported as skipped.
    """

    def __init__(self, config: SimulationConfig, max_workers: Optional[int] = None,
                 executor: str = "process", record_events: bool = False,
                 show_progress: bool = True):
        """Initialize orchestrator.

        Args:
            config: Parsed simulation configuration
            max_workers: Worker count, overriding the configuration
            executor: ``process`` or ``thread`` pool
            record_events: Keep every lifecycle event in the outcomes
            show_progress: Display a progress bar
        """
        if executor not in EXECUTORS:
            raise ConfigurationError(f"Unknown executor: {executor}. Expected one of {', '.join(EXECUTORS)}")
        self.config = config
        self.max_workers = max_workers or config.max_workers or os.cpu_count() or 1
        self.executor = executor
        self.record_events = record_events
        self.show_progress = show_progress
        self.logger = setup_logger(self.__class__.__name__)

    def replicate_seeds(self) -> List[int]:
        """Seeds of every replicate, explicit or derived from the master seed."""
        if self.config.rng_seeds is not None:
            return list(self.config.rng_seeds)
        if self.config.seed is None:
            self.logger.warning("No seed configured; results will not be reproducible")
        return derive_replicate_seeds(self.config.seed, self.config.simulations)

    def run(self) -> List[ReplicateOutcome]:
        """Run every replicate.

        Returns:
            One outcome per replicate, ordered by replicate index

        Raises:
            ResourceLimitError: If the configuration exceeds its limits
        """
        self.config.validate_resources()
        seeds = self.replicate_seeds()
        workers = min(self.max_workers, len(seeds))

        self.logger.info(
            f"Running {len(seeds)} replicates on {workers} {self.executor} worker(s)"
        )
        start_time = time.time()

        with tqdm(total=len(seeds), desc="Replicates", disable=not self.show_progress) as progress:
            if workers <= 1:
                outcomes = self._run_inline(seeds, start_time, progress)
            else:
                outcomes = self._run_pool(seeds, workers, start_time, progress)

        outcomes.sort(key=lambda o: o.index)
        counts = {status: sum(1 for o in outcomes if o.status == status)
                  for status in (STATUS_COMPLETED, STATUS_FAILED, STATUS_SKIPPED)}
        self.logger.info(
            f"Replicates finished in {time.time() - start_time:.2f}s: "
            + ", ".join(f"{n} {status}" for status, n in counts.items())
        )
        return outcomes

    def _past_deadline(self, start_time: float) -> bool:
        return self.config.deadline is not None and time.time() - start_time >= self.config.deadline

    def _skipped(self, index: int, seed: int) -> ReplicateOutcome:
        return ReplicateOutcome(index=index, seed=seed, status=STATUS_SKIPPED)

    def _run_inline(self, seeds: Sequence[int], start_time: float, progress) -> List[ReplicateOutcome]:
        outcomes = []
        for index, seed in enumerate(seeds):
            if self._past_deadline(start_time):
                outcomes.append(self._skipped(index, seed))
            else:
                outcomes.append(run_replicate(self.config, index, seed, self.record_events))
            progress.update(1)
        return outcomes

    def _run_pool(self, seeds: Sequence[int], workers: int, start_time: float,
                  progress) -> List[ReplicateOutcome]:
        pool_class = ProcessPoolExecutor if self.executor == "process" else ThreadPoolExecutor
        max_in_flight = 2 * workers
        outcomes: List[ReplicateOutcome] = []
        pending: Dict[Future, int] = {}
        next_index = 0

        with pool_class(max_workers=workers) as pool:
            while next_index < len(seeds) or pending:
                while (next_index < len(seeds) and len(pending) < max_in_flight
                       and not self._past_deadline(start_time)):
                    future = pool.submit(run_replicate, self.config, next_index,
                                         seeds[next_index], self.record_events)
                    pending[future] = next_index
                    next_index += 1

                if self._past_deadline(start_time) and next_index < len(seeds):
                    self.logger.warning(
                        f"Deadline reached; skipping {len(seeds) - next_index} replicates"
                    )
                    outcomes.extend(self._skipped(i, seeds[i]) for i in range(next_index, len(seeds)))
                    progress.update(len(seeds) - next_index)
                    next_index = len(seeds)

                if not pending:
                    break

                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    pending.pop(future)
                    outcomes.append(future.result())
                    progress.update(1)

        return outcomes


def aggregate_outcomes(outcomes: Sequence[ReplicateOutcome], confidence: float = 0.95) -> Dict:
    """Summarise metrics across completed replicates.

    Values are sorted before reduction, so the summary does not depend on the
    order in which replicates finished.

    Args:
        outcomes: Replicate outcomes
        confidence: Level of the Student-t confidence interval

    Returns:
        Dictionary with replicate counts, pooled transition counts and per
        metric mean, std, min, max, confidence interval and on-target fraction
    """
    completed = [o for o in outcomes if o.ok]
    summary: Dict[str, Any] = {
        'replicates': len(outcomes),
        'completed': len(completed),
        'failed': sum(1 for o in outcomes if o.status == STATUS_FAILED),
        'skipped': sum(1 for o in outcomes if o.status == STATUS_SKIPPED),
        'totals': {},
        'metrics': {},
    }

    for key in ('arrived_count', 'connected_count', 'abandoned_count', 'completed_count',
                'total_requests', 'stale_events'):
        summary['totals'][key] = int(sum(o.results.get(key, 0) for o in completed))

    labels = sorted({label for o in completed for label in o.results.get('metrics', {})})
    for label in labels:
        entries = [o.results['metrics'][label] for o in completed if label in o.results['metrics']]
        values = np.sort(np.asarray([e['value'] for e in entries if e['value'] is not None],
                                    dtype=float))
        stats_entry: Dict[str, Any] = {
            'metric': entries[0]['metric'],
            'target': entries[0]['target'],
            'condition': entries[0]['condition'],
            'samples': int(values.size),
            'on_target_fraction': sum(1 for e in entries if e['on_target']) / len(entries),
            'mean': None, 'std': None, 'min': None, 'max': None,
            'ci_low': None, 'ci_high': None,
        }
        if values.size:
            mean = float(np.mean(values))
            std = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
            stats_entry.update({
                'mean': mean,
                'std': std,
                'min': float(values[0]),
                'max': float(values[-1]),
                'ci_low': mean,
                'ci_high': mean,
            })
            if values.size > 1 and std > 0:
                half_width = stats.t.ppf((1 + confidence) / 2, values.size - 1) * std / math.sqrt(values.size)
                stats_entry['ci_low'] = mean - float(half_width)
                stats_entry['ci_high'] = mean + float(half_width)
        summary['metrics'][label] = stats_entry

    return summary
